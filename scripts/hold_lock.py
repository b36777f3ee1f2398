"""CLI entrypoint: acquire a lock, keep it alive while working, release it."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from kvlock.core.errors import AcquisitionFailed, LockError
from kvlock.core.lock import LockClient
from kvlock.core.settings import LockSettings
from kvlock.utils.logging import get_logger


logger = get_logger("kvlock.cli")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Hold a distributed lock with auto-renewal while simulating work.")
    parser.add_argument("--resource", required=True, help="Lock key")
    parser.add_argument("--config", type=Path, default=None, help="Path to lock settings YAML")
    parser.add_argument("--url", default=None, help="Redis URL (overrides config and REDIS_URL)")
    parser.add_argument("--ttl-seconds", type=float, default=None, help="Lock TTL")
    parser.add_argument("--renew-seconds", type=float, default=None, help="Renewal interval")
    parser.add_argument("--work-seconds", type=float, default=15.0, help="Simulated work time (default: 15)")
    return parser.parse_args()


def _load_settings(args: argparse.Namespace) -> LockSettings:
    settings = LockSettings.from_file(args.config) if args.config else LockSettings()
    update = {}
    if args.url:
        update["redis_url"] = args.url
    if args.ttl_seconds is not None:
        update["ttl_seconds"] = args.ttl_seconds
    if args.renew_seconds is not None:
        update["renew_interval_seconds"] = args.renew_seconds
    if not update:
        return settings
    return LockSettings.model_validate(settings.model_dump() | update)


async def main() -> int:
    args = parse_args()
    settings = _load_settings(args)
    client = LockClient.from_settings(settings)
    try:
        async with client.lock(
            args.resource,
            settings.ttl_seconds,
            renew_interval=settings.effective_renew_interval,
            renew_timeout=settings.effective_renew_timeout,
        ) as lock:
            logger.info("Holding %s as %s for %.1fs", lock.key, lock.token, args.work_seconds)
            await asyncio.sleep(args.work_seconds)
    except AcquisitionFailed:
        logger.error("Lock %s is held by someone else", args.resource)
        return 1
    except LockError as exc:
        logger.error("Lost lock %s: %s", args.resource, exc)
        return 2
    finally:
        await client.close()
    logger.info("Released %s", args.resource)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))

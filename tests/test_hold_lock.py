from __future__ import annotations

import importlib.util
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from kvlock.core.lock import LockClient
from kvlock.core.store import RENEW_SCRIPT
from kvlock.core.store_memory import MemoryStore


SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "hold_lock.py"


def _load_cli():
    spec = importlib.util.spec_from_file_location("hold_lock", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class LosingStore(MemoryStore):
    """Answers every renewal as if another holder had taken the key."""

    async def eval_atomic(self, script, keys, args):
        if script == RENEW_SCRIPT:
            return 0
        return await super().eval_atomic(script, keys, args)


async def _run(monkeypatch, store, *extra):
    cli = _load_cli()
    monkeypatch.setattr(
        sys,
        "argv",
        ["hold_lock.py", "--resource", "res", "--ttl-seconds", "5", "--work-seconds", "0.1", *extra],
    )
    with patch.object(cli.LockClient, "from_settings", return_value=LockClient(store)):
        return await cli.main()


@pytest.mark.asyncio
async def test_exits_0_after_holding_the_lock(monkeypatch):
    store = MemoryStore()

    assert await _run(monkeypatch, store, "--renew-seconds", "0.02") == 0


@pytest.mark.asyncio
async def test_exits_1_when_lock_is_held_elsewhere(monkeypatch):
    store = MemoryStore()
    await LockClient(store).acquire("res", 5)

    assert await _run(monkeypatch, store) == 1


@pytest.mark.asyncio
async def test_exits_2_when_renewal_loses_the_lock(monkeypatch):
    store = LosingStore()

    assert await _run(monkeypatch, store, "--renew-seconds", "0.02") == 2

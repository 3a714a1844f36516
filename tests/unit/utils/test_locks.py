# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for keyed asyncio locks."""

import asyncio

import pytest

from src.utils.locks import KeyedLock


@pytest.mark.unit
class TestKeyedLock:
    """Tests for KeyedLock."""

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        """Test that holders of one key never overlap."""
        locks = KeyedLock()
        active = 0
        peak = 0

        async def _work():
            nonlocal active, peak
            async with locks.hold("student-1"):
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0)
                active -= 1

        await asyncio.gather(*(_work() for _ in range(5)))

        assert peak == 1

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self):
        """Test that one key does not block another."""
        locks = KeyedLock()
        release = asyncio.Event()

        async def _hold_a():
            async with locks.hold("a"):
                await release.wait()

        task = asyncio.create_task(_hold_a())
        await asyncio.sleep(0)

        async with locks.hold("b"):
            assert locks.is_locked("a")
            assert locks.is_locked("b")

        release.set()
        await task

    @pytest.mark.asyncio
    async def test_locks_are_dropped_when_idle(self):
        """Test that released keys do not accumulate."""
        locks = KeyedLock()

        async with locks.hold(("student", "step", "1")):
            assert len(locks) == 1

        assert len(locks) == 0
        assert not locks.is_locked(("student", "step", "1"))

    @pytest.mark.asyncio
    async def test_lock_released_on_error(self):
        """Test that an exception inside the block releases the key."""
        locks = KeyedLock()

        with pytest.raises(RuntimeError):
            async with locks.hold("k"):
                raise RuntimeError("boom")

        assert len(locks) == 0

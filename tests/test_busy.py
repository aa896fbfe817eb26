"""Tests for busy flags and fan-out settling."""

import asyncio

import pytest

from workshop.busy import BusyFlags
from workshop.concurrency import settle_all


class TestBusyFlags:

    def test_set_and_clear(self):
        flags = BusyFlags()
        flags.set_busy("u", True)
        assert flags.is_busy("u")
        assert "u" in flags
        flags.set_busy("u", False)
        assert not flags.is_busy("u")
        flags.set_busy("u", False)

    def test_guard_holds_and_releases(self):
        flags = BusyFlags()
        with flags.guard("u") as acquired:
            assert acquired
            assert flags.is_busy("u")
        assert not flags.is_busy("u")

    def test_guard_backs_off_when_held(self):
        flags = BusyFlags()
        flags.set_busy("u", True)
        with flags.guard("u") as acquired:
            assert not acquired
        assert flags.is_busy("u")

    def test_guard_releases_on_exception(self):
        flags = BusyFlags()
        with pytest.raises(RuntimeError):
            with flags.guard("u"):
                raise RuntimeError("boom")
        assert not flags.is_busy("u")

    def test_nested_guard_on_held_key_backs_off(self):
        flags = BusyFlags()
        with flags.guard("u"):
            with flags.guard("u") as acquired:
                assert not acquired
            assert flags.is_busy("u")
        assert not flags.is_busy("u")

    def test_keys_are_independent(self):
        flags = BusyFlags()
        with flags.guard("a"):
            with flags.guard("b") as acquired:
                assert acquired
            assert len(flags) == 1


class TestSettleAll:

    def test_collects_successes_and_failures(self):
        async def ok(value):
            await asyncio.sleep(0)
            return value

        async def broken():
            await asyncio.sleep(0)
            raise ValueError("nope")

        settled = asyncio.run(settle_all([("a", ok(1)), ("b", broken()), ("c", ok(3))]))
        assert settled.successes == {"a": 1, "c": 3}
        assert list(settled.failures) == ["b"]
        assert isinstance(settled.failures["b"], ValueError)

    def test_empty(self):
        settled = asyncio.run(settle_all([]))
        assert settled.successes == {}
        assert settled.failures == {}

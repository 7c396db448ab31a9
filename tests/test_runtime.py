"""Tests for the background runtime bridge"""

import asyncio
import threading

import pytest

from db_console.backend import BackendError
from db_console.runtime import BackgroundRuntime


def test_run_returns_result(runtime):
    async def answer():
        await asyncio.sleep(0)
        return 42

    assert runtime.run(answer()) == 42


def test_runs_on_the_loop_thread(runtime):
    async def thread_name():
        return threading.current_thread().name

    assert runtime.run(thread_name()) == "db-console-runtime"


def test_exceptions_propagate(runtime):
    async def fail():
        raise BackendError("boom")

    with pytest.raises(BackendError, match="boom"):
        runtime.run(fail())


def test_sequential_calls_share_the_loop(runtime):
    async def loop_id():
        return id(asyncio.get_running_loop())

    assert runtime.run(loop_id()) == runtime.run(loop_id())


def test_run_from_loop_thread_is_rejected(runtime):
    async def nested():
        async def inner():
            return 1

        runtime.run(inner())

    with pytest.raises(RuntimeError, match="cannot be called from the runtime thread"):
        runtime.run(nested())


def test_run_after_close_is_rejected():
    runtime = BackgroundRuntime()
    runtime.close()
    assert not runtime.is_running

    async def answer():
        return 1

    with pytest.raises(RuntimeError, match="not running"):
        runtime.run(answer())


def test_context_manager_closes():
    with BackgroundRuntime() as runtime:
        assert runtime.is_running
    assert not runtime.is_running

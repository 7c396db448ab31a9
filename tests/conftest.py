"""Pytest configuration and fixtures"""

from io import StringIO

import pytest
from rich.console import Console

from db_console.console import create_context
from db_console.memory_backend import MemoryBackend
from db_console.runtime import BackgroundRuntime

HIDDEN_VALUE = "s3cret"


def make_console() -> Console:
    """A console that records plain text output"""
    return Console(file=StringIO(), width=200, color_system=None, force_terminal=False)


def output_of(console: Console) -> str:
    return console.file.getvalue()


def connect_memory_backend(settings):
    """Backend factory usable with --backend conftest:connect_memory_backend"""
    return MemoryBackend.connect(settings)


@pytest.fixture
def runtime():
    """Background event loop, stopped after the test"""
    runtime = BackgroundRuntime()
    yield runtime
    runtime.close()


@pytest.fixture
def memory_backend():
    return MemoryBackend()


@pytest.fixture
def context(memory_backend, runtime, tmp_path):
    """Console context on an in-memory backend with the entry frame pushed"""
    return create_context(
        memory_backend,
        runtime,
        console=make_console(),
        error_console=make_console(),
        config_dir=tmp_path / "config",
        hidden_input=lambda prompt: HIDDEN_VALUE,
    )

"""Completion providers for command arguments"""

import glob
import logging
import os
import threading
from collections.abc import Awaitable, Callable

from .backend import Backend, BackendError
from .runtime import BackgroundRuntime

logger = logging.getLogger(__name__)


class CompletionCache:
    """Last complete snapshot of candidates fetched from the server

    Readers always see either nothing (never fetched) or a full snapshot;
    a refresh replaces the whole snapshot at once.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._items: tuple[str, ...] | None = None

    def replace_all(self, items):
        with self._lock:
            self._items = tuple(items)

    def snapshot(self) -> tuple[str, ...]:
        with self._lock:
            return self._items or ()

    def is_populated(self) -> bool:
        with self._lock:
            return self._items is not None

    def clear(self):
        with self._lock:
            self._items = None


def cached_completer(
    fetch: Callable[[], list[str] | None],
    cache: CompletionCache,
    refresh_threshold: int = 1,
) -> Callable[[str], list[str]]:
    """Build a provider that refreshes the cache on short partial words

    fetch returns None when the server could not be asked; the previous
    snapshot is kept in that case.
    """

    def complete(partial: str) -> list[str]:
        if len(partial) <= refresh_threshold or not cache.is_populated():
            items = fetch()
            if items is not None:
                logger.debug("Refreshed completion cache with %d item(s)", len(items))
                cache.replace_all(items)
        return [item for item in cache.snapshot() if item.startswith(partial)]

    return complete


def _fetcher(runtime: BackgroundRuntime, call: Callable[[], Awaitable[list[str]]]) -> Callable[[], list[str] | None]:
    def fetch() -> list[str] | None:
        try:
            return runtime.run(call())
        except (BackendError, OSError) as e:
            logger.debug("Could not fetch completions: %s", e)
            return None

    return fetch


def database_name_completer(
    backend: Backend,
    runtime: BackgroundRuntime,
    cache: CompletionCache,
    refresh_threshold: int = 1,
) -> Callable[[str], list[str]]:
    return cached_completer(_fetcher(runtime, backend.database_names), cache, refresh_threshold)


def user_name_completer(
    backend: Backend,
    runtime: BackgroundRuntime,
    cache: CompletionCache,
    refresh_threshold: int = 1,
) -> Callable[[str], list[str]]:
    return cached_completer(_fetcher(runtime, backend.user_names), cache, refresh_threshold)


def file_completer(partial: str) -> list[str]:
    """Complete local paths, marking directories with a trailing separator"""
    expanded = os.path.expanduser(partial)
    candidates = []
    for path in sorted(glob.glob(expanded + "*")):
        if os.path.isdir(path):
            path += os.sep
        if partial.startswith("~") and not expanded.startswith("~"):
            home = os.path.expanduser("~")
            path = "~" + path[len(home) :]
        candidates.append(path)
    return candidates

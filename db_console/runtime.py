"""Bridge from the synchronous console loop to asynchronous backend calls"""

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Coroutine
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackgroundRuntime:
    """Run coroutines on a dedicated event loop thread

    The console loop is strictly sequential, so at most one call is ever
    waited on. Each call gets its own one-shot future; the loop thread
    outlives every call.

    Usage:
        runtime = BackgroundRuntime()
        names = runtime.run(backend.database_names())
        runtime.close()
    """

    def __init__(self):
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="db-console-runtime", daemon=True)
        self._thread.start()

    def _run_loop(self):
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_forever()
        finally:
            self._loop.run_until_complete(self._loop.shutdown_asyncgens())
            self._loop.close()

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive() and not self._loop.is_closed()

    def run(self, coroutine: Coroutine[Any, Any, T]) -> T:
        """Block until the coroutine finishes on the loop thread and return its result

        Exceptions raised by the coroutine are re-raised here. Interrupts
        received while waiting are ignored until the call returns.
        """
        if threading.current_thread() is self._thread:
            coroutine.close()
            raise RuntimeError("BackgroundRuntime.run() cannot be called from the runtime thread")
        if not self.is_running:
            coroutine.close()
            raise RuntimeError("Background runtime is not running")

        future = asyncio.run_coroutine_threadsafe(coroutine, self._loop)
        while True:
            try:
                return future.result()
            except KeyboardInterrupt:
                logger.debug("Interrupt ignored while a backend call is in flight")
            except concurrent.futures.CancelledError as err:
                raise RuntimeError("Background operation was cancelled") from err

    def close(self):
        if self._thread.is_alive():
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5.0)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

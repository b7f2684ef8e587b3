"""Timeout-bounded calls to blocking collaborators."""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from typing import Any, Callable


class BoundedCaller:
    """Runs blocking calls on a worker pool and waits at most timeout_seconds.

    A call that overruns is abandoned; its worker finishes in the background
    and the result is discarded.
    """

    def __init__(self, timeout_seconds: float, max_workers: int = 8, name: str = "bounded"):
        self.timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)

    def call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Call fn(*args, **kwargs) under the timeout.

        Raises:
            TimeoutError: If the call did not finish in time
            Exception: Whatever fn raised
        """
        future = self._executor.submit(fn, *args, **kwargs)
        try:
            return future.result(timeout=self.timeout_seconds)
        except FuturesTimeout:
            future.cancel()
            raise TimeoutError(
                f"{getattr(fn, '__qualname__', fn)} did not finish within {self.timeout_seconds}s"
            ) from None

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

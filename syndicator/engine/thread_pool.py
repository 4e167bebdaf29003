"""Thread pool running independent sites in parallel."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from threading import Lock
from typing import Callable, Dict, Iterable, TypeVar

T = TypeVar("T")


class ThreadPoolManager:
    """Shared executor for cross-site work; each site runs on a single worker."""

    def __init__(self, default_workers: int = 4) -> None:
        self.default_workers = default_workers
        self._executor: ThreadPoolExecutor | None = None
        self._lock = Lock()

    def get(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.default_workers, thread_name_prefix="syndicator"
                )
            return self._executor

    def run_each(self, keys: Iterable[str], func: Callable[[str], T]) -> Dict[str, T | BaseException]:
        """Run ``func(key)`` for every key; a failing key maps to its exception."""

        executor = self.get()
        futures: dict[Future, str] = {executor.submit(func, key): key for key in keys}
        results: Dict[str, T | BaseException] = {}
        for future in as_completed(futures):
            key = futures[future]
            try:
                results[key] = future.result()
            except Exception as exc:  # noqa: BLE001
                results[key] = exc
        return results

    def shutdown(self) -> None:
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None


__all__ = ["ThreadPoolManager"]

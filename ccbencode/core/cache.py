"""Process-wide caches keyed by shape.

Both caches live for the life of the process and are never invalidated;
shapes are assumed not to change once a program has started using them.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class MemoTable(Generic[K, V]):
    """Lookup-or-compute table where the first stored result wins.

    Concurrent first callers may each run ``compute``; only one result is
    published and every caller gets that one. ``compute`` must therefore be
    pure.
    """

    def __init__(self, compute: Callable[[K], V]):
        self._compute = compute
        self._entries: dict[K, V] = {}
        self._lock = threading.Lock()

    def get(self, key: K) -> V:
        try:
            return self._entries[key]
        except KeyError:
            pass
        value = self._compute(key)
        with self._lock:
            return self._entries.setdefault(key, value)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class StrategyCache(Generic[K]):
    """Builds one strategy callable per key, at most once.

    The first caller for a key installs a placeholder before building. Callers
    arriving meanwhile, including recursive lookups made by the build itself
    for self-referencing shapes, receive the placeholder; calling it blocks
    until the real strategy is published and then delegates to it. Once built,
    the real strategy replaces the placeholder; if the build fails, callers
    of the placeholder get the exception the build raised.
    """

    def __init__(self, build: Callable[[K], Callable[..., Any]], name: str = "strategy"):
        self._build = build
        self._name = name
        self._entries: dict[K, Callable[..., Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: K) -> Callable[..., Any]:
        strategy = self._entries.get(key)
        if strategy is not None:
            return strategy

        ready = threading.Event()
        outcome: list[Any] = []

        def placeholder(*args: Any, **kwargs: Any) -> Any:
            ready.wait()
            result = outcome[0]
            if isinstance(result, BaseException):
                raise result
            return result(*args, **kwargs)

        with self._lock:
            existing = self._entries.get(key)
            if existing is not None:
                return existing
            self._entries[key] = placeholder

        try:
            strategy = self._build(key)
        except BaseException as e:
            outcome.append(e)
            with self._lock:
                if self._entries.get(key) is placeholder:
                    del self._entries[key]
            ready.set()
            raise

        outcome.append(strategy)
        with self._lock:
            self._entries[key] = strategy
        ready.set()
        return strategy

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"<StrategyCache {self._name}: {len(self._entries)} entries>"

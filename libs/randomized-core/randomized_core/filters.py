import re
from abc import ABC, abstractmethod
from typing import Callable

from randomized_core.threads import ThreadRecord

# ---------------------------------------------------------------------------- #
#                                Thread Filters                                #
# ---------------------------------------------------------------------------- #


class ThreadFilter(ABC):
    """Allow-list entry of the thread leak detector.

    `reject(thread)` returns True if the thread is permitted to outlive the
    test, i.e. it is rejected from the list of leaks.
    """

    @abstractmethod
    def reject(self, thread: ThreadRecord) -> bool:
        raise NotImplementedError()

    def __call__(self, thread: ThreadRecord) -> bool:
        return self.reject(thread)


class NameFilter(ThreadFilter):
    def __init__(self, name: str):
        self.name = name

    def reject(self, thread: ThreadRecord) -> bool:
        return thread.name == self.name

    def __repr__(self):
        return f"NameFilter({self.name!r})"


class NamePrefixFilter(ThreadFilter):
    def __init__(self, prefix: str):
        self.prefix = prefix

    def reject(self, thread: ThreadRecord) -> bool:
        return thread.name.startswith(self.prefix)

    def __repr__(self):
        return f"NamePrefixFilter({self.prefix!r})"


class NamePatternFilter(ThreadFilter):
    """Accepts threads whose whole name matches a regular expression."""

    def __init__(self, pattern: str | re.Pattern[str]):
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern

    def reject(self, thread: ThreadRecord) -> bool:
        return self.pattern.fullmatch(thread.name) is not None

    def __repr__(self):
        return f"NamePatternFilter({self.pattern.pattern!r})"


class DaemonFilter(ThreadFilter):
    def reject(self, thread: ThreadRecord) -> bool:
        return thread.daemon

    def __repr__(self):
        return "DaemonFilter()"


class PredicateFilter(ThreadFilter):
    def __init__(self, predicate: Callable[[ThreadRecord], bool], name: str | None = None):
        self.predicate = predicate
        self.name = name or getattr(predicate, "__name__", "predicate")

    def reject(self, thread: ThreadRecord) -> bool:
        return bool(self.predicate(thread))

    def __repr__(self):
        return f"PredicateFilter({self.name})"


class FriendlyZombieFilter(NameFilter):
    """Lets the intentionally immortal `friendly-zombie` thread survive."""

    def __init__(self):
        super().__init__("friendly-zombie")


FRIENDLY_ZOMBIE_FILTER = FriendlyZombieFilter()


# ---------------------------------------------------------------------------- #


def as_thread_filter(candidate: object) -> ThreadFilter:
    """Normalize a filter instance, a filter class or a plain callable."""
    if isinstance(candidate, ThreadFilter):
        return candidate
    if isinstance(candidate, type):
        if not issubclass(candidate, ThreadFilter):
            raise TypeError(f"{candidate.__name__} is not a ThreadFilter subclass")
        return candidate()
    if callable(candidate):
        return PredicateFilter(candidate)
    raise TypeError(f"cannot use {candidate!r} as a thread filter")

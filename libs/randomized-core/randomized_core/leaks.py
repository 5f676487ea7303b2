import logging
from enum import StrEnum
from typing import Iterable

from randomized_core.errors import ThreadLeakError
from randomized_core.filters import ThreadFilter
from randomized_core.threads import DEFAULT_THREAD_LISTER, ThreadKey, ThreadLister, ThreadRecord

logger = logging.getLogger("randomized")


class LeakScope(StrEnum):
    TEST = "test"
    NONE = "none"


class LeakState(StrEnum):
    RUNNING = "running"
    COMPLETED_CLEAN = "completed-clean"
    COMPLETED_LEAKED = "completed-leaked"


# ---------------------------------------------------------------------------- #
#                             Thread Leak Detection                            #
# ---------------------------------------------------------------------------- #


def snapshot_threads_before(lister: ThreadLister | None = None) -> frozenset[ThreadKey]:
    """Keys of every thread alive right before a test body runs.

    The snapshot holds the `threading.Thread` objects, so a thread started later
    is never mistaken for one of them even if it gets a recycled ident.
    """
    lister = lister or DEFAULT_THREAD_LISTER
    before = frozenset(t.key for t in lister.list_live_threads())
    logger.debug(f"thread snapshot: {len(before)} live thread(s)")
    return before


def accepting_filter(thread: ThreadRecord, filters: Iterable[ThreadFilter]) -> ThreadFilter | None:
    for thread_filter in filters:
        if thread_filter.reject(thread):
            return thread_filter
    return None


def detect_leaks(
    before: Iterable[ThreadKey],
    filters: Iterable[ThreadFilter] = (),
    lister: ThreadLister | None = None,
) -> list[ThreadRecord]:
    """Threads alive now, absent from `before` and accepted by no filter.

    A single non-blocking look at the live threads, nothing is joined or
    waited for.
    """
    lister = lister or DEFAULT_THREAD_LISTER
    before = frozenset(before)
    filters = list(filters)

    leaked: list[ThreadRecord] = []
    for thread in lister.list_live_threads():
        if thread.key in before:
            continue
        thread_filter = accepting_filter(thread, filters)
        if thread_filter is not None:
            logger.debug(f"thread [{thread.name}] survives, accepted by {thread_filter!r}")
            continue
        leaked.append(thread)
    return leaked


class ThreadLeakDetector:
    """Runs the before/after comparison around one test invocation."""

    test_name: str
    filters: list[ThreadFilter]
    lister: ThreadLister
    state: LeakState
    leaked: list[ThreadRecord]

    def __init__(
        self,
        test_name: str,
        filters: Iterable[ThreadFilter] = (),
        lister: ThreadLister | None = None,
    ):
        self.test_name = test_name
        self.filters = list(filters)
        self.lister = lister or DEFAULT_THREAD_LISTER
        self.state = LeakState.RUNNING
        self.leaked = []
        self._before = snapshot_threads_before(self.lister)

    def complete(self) -> list[ThreadRecord]:
        if self.state != LeakState.RUNNING:
            raise RuntimeError(f"leak detection for [{self.test_name}] already completed")
        self.leaked = detect_leaks(self._before, self.filters, self.lister)
        if self.leaked:
            self.state = LeakState.COMPLETED_LEAKED
            for thread in self.leaked:
                logger.error(f"thread [{thread.name}] leaked from test [{self.test_name}]")
        else:
            self.state = LeakState.COMPLETED_CLEAN
        return self.leaked

    def error(self) -> ThreadLeakError | None:
        if self.state == LeakState.COMPLETED_LEAKED:
            return ThreadLeakError(self.test_name, self.leaked)
        return None

    def check(self):
        """Complete detection and raise `ThreadLeakError` on leaks."""
        self.complete()
        error = self.error()
        if error is not None:
            raise error

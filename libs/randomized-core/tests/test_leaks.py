import threading
from contextlib import contextmanager

import pytest

from randomized_core.errors import ThreadLeakError
from randomized_core.filters import FRIENDLY_ZOMBIE_FILTER, NameFilter, NamePrefixFilter
from randomized_core.leaks import LeakState, ThreadLeakDetector, detect_leaks, snapshot_threads_before
from randomized_core.threads import NativeThreadLister, PythonThreadLister, ThreadLister, ThreadRecord


class FakeThreadLister(ThreadLister):
    def __init__(self, *names: str):
        self.records = [ThreadRecord(ident=i, name=n) for i, n in enumerate(names)]

    def spawn(self, name: str, daemon: bool = False) -> ThreadRecord:
        record = ThreadRecord(ident=len(self.records), name=name, daemon=daemon)
        self.records.append(record)
        return record

    def list_live_threads(self) -> list[ThreadRecord]:
        return list(self.records)


@contextmanager
def running_thread(name: str):
    """A thread looping until the block ends, then stopped and joined."""
    stop = threading.Event()
    thread = threading.Thread(target=stop.wait, name=name, daemon=True)
    thread.start()
    try:
        yield thread
    finally:
        stop.set()
        thread.join(timeout=5)


def test_no_new_threads_no_leaks():
    lister = FakeThreadLister("MainThread", "worker")
    before = snapshot_threads_before(lister)
    assert detect_leaks(before, [], lister) == []


def test_new_threads_are_leaks_unless_filtered():
    lister = FakeThreadLister("MainThread")
    before = snapshot_threads_before(lister)
    rogue = lister.spawn("rogue")
    lister.spawn("friendly-zombie")
    lister.spawn("pool-1")

    leaked = detect_leaks(before, [FRIENDLY_ZOMBIE_FILTER, NamePrefixFilter("pool-")], lister)
    assert leaked == [rogue]


def test_filter_order_does_not_matter():
    lister = FakeThreadLister("MainThread")
    before = snapshot_threads_before(lister)
    for name in ("a", "b", "c", "d"):
        lister.spawn(name)

    filters = [NameFilter("a"), NameFilter("c")]
    assert detect_leaks(before, filters, lister) == detect_leaks(before, filters[::-1], lister)
    assert [t.name for t in detect_leaks(before, filters, lister)] == ["b", "d"]


def test_detection_is_idempotent():
    lister = FakeThreadLister("MainThread")
    before = snapshot_threads_before(lister)
    lister.spawn("rogue")

    assert detect_leaks(before, [], lister) == detect_leaks(before, [], lister)


def test_threads_gone_before_completion_are_not_leaks():
    lister = FakeThreadLister("MainThread")
    before = snapshot_threads_before(lister)
    lister.spawn("short-lived")
    lister.records.pop()

    assert detect_leaks(before, [], lister) == []


def test_friendly_zombie_survives():
    before = snapshot_threads_before()
    with running_thread("friendly-zombie"):
        assert detect_leaks(before, [FRIENDLY_ZOMBIE_FILTER]) == []


def test_rogue_thread_is_reported():
    before = snapshot_threads_before()
    with running_thread("rogue"):
        leaked = detect_leaks(before, [FRIENDLY_ZOMBIE_FILTER])

    assert len(leaked) == 1
    assert leaked[0].name == "rogue"
    assert leaked[0].daemon


def test_thread_reusing_an_ident_is_reported():
    stop = threading.Event()
    earlier = threading.Thread(target=stop.wait, name="pre-existing", daemon=True)
    earlier.start()
    before = snapshot_threads_before()
    stop.set()
    earlier.join(timeout=5)

    with running_thread("rogue") as rogue:
        leaked = detect_leaks(before, [])

    assert [t.name for t in leaked] == ["rogue"]
    assert leaked[0].thread is rogue


def test_recycled_ident_still_counts_as_new():
    lister = FakeThreadLister("MainThread")
    stop = threading.Event()
    earlier = threading.Thread(target=stop.wait, name="pre-existing", daemon=True)
    earlier.start()
    lister.records.append(ThreadRecord.from_thread(earlier))
    before = snapshot_threads_before(lister)
    stop.set()
    earlier.join(timeout=5)

    later = threading.Thread(target=lambda: None, name="rogue")
    later.start()
    later.join(timeout=5)
    # same ident as the thread seen before, different thread object
    lister.records[-1] = ThreadRecord(
        ident=earlier.ident, name="rogue", native_id=earlier.native_id, thread=later
    )

    assert [t.name for t in detect_leaks(before, [], lister)] == ["rogue"]


def test_detector_state_machine_clean():
    lister = FakeThreadLister("MainThread")
    detector = ThreadLeakDetector("test_clean", [], lister)
    assert detector.state == LeakState.RUNNING

    assert detector.complete() == []
    assert detector.state == LeakState.COMPLETED_CLEAN
    assert detector.error() is None


def test_detector_state_machine_leaked():
    lister = FakeThreadLister("MainThread")
    detector = ThreadLeakDetector("test_leaky", [], lister)
    lister.spawn("rogue")
    lister.spawn("rogue-2")

    with pytest.raises(ThreadLeakError) as excinfo:
        detector.check()

    assert detector.state == LeakState.COMPLETED_LEAKED
    assert excinfo.value.thread_names == ["rogue", "rogue-2"]
    assert "[rogue]" in str(excinfo.value)
    assert "test_leaky" in str(excinfo.value)
    assert isinstance(excinfo.value, AssertionError)


def test_detector_completes_once():
    detector = ThreadLeakDetector("test_twice", [], FakeThreadLister("MainThread"))
    detector.complete()
    with pytest.raises(RuntimeError):
        detector.complete()


def test_python_lister_sees_current_thread():
    names = [t.name for t in PythonThreadLister().list_live_threads()]
    assert threading.current_thread().name in names


def test_native_lister_sees_python_threads_by_name():
    lister = NativeThreadLister()
    before = snapshot_threads_before(lister)
    with running_thread("native-rogue"):
        leaked = detect_leaks(before, [], lister)
        names = [t.name for t in lister.list_live_threads()]

    assert threading.current_thread().name in names
    assert "native-rogue" in [t.name for t in leaked]

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import psutil

ThreadKey = threading.Thread | tuple[str, int]


@dataclass(frozen=True)
class ThreadRecord:
    """A thread that was alive when a lister looked.

    `ident` is the `threading` identifier and is `None` for OS threads the
    `threading` module does not know about (C extensions, embedded runtimes).
    """

    ident: int | None
    name: str
    native_id: int | None = None
    daemon: bool = False
    thread: threading.Thread | None = field(default=None, compare=False, repr=False)

    @property
    def key(self) -> ThreadKey:
        """The thread object itself when known, idents are reused once a thread exits."""
        if self.thread is not None:
            return self.thread
        if self.ident is not None:
            return ("python", self.ident)
        assert self.native_id is not None, "thread record without any identifier"
        return ("native", self.native_id)

    @classmethod
    def from_thread(cls, thread: threading.Thread) -> "ThreadRecord":
        return cls(
            ident=thread.ident,
            name=thread.name,
            native_id=thread.native_id,
            daemon=thread.daemon,
            thread=thread,
        )


# ---------------------------------------------------------------------------- #
#                                Thread Listers                                #
# ---------------------------------------------------------------------------- #


class ThreadLister(ABC):
    @abstractmethod
    def list_live_threads(self) -> list[ThreadRecord]:
        raise NotImplementedError()


class PythonThreadLister(ThreadLister):
    """Every started, still running `threading.Thread` of this interpreter."""

    def list_live_threads(self) -> list[ThreadRecord]:
        return [
            ThreadRecord.from_thread(t)
            for t in threading.enumerate()
            if t.ident is not None and t.is_alive()
        ]


class NativeThreadLister(ThreadLister):
    """All OS threads of this process as reported by psutil.

    Threads started through `threading` keep their Python name, the others
    are named after their native id.
    """

    process: psutil.Process

    def __init__(self, process: psutil.Process | None = None):
        self.process = process if process is not None else psutil.Process()

    def list_live_threads(self) -> list[ThreadRecord]:
        by_native_id = {
            t.native_id: t for t in threading.enumerate() if t.native_id is not None and t.is_alive()
        }
        records = []
        for os_thread in self.process.threads():
            known = by_native_id.get(os_thread.id)
            if known is not None:
                records.append(ThreadRecord.from_thread(known))
            else:
                records.append(ThreadRecord(ident=None, name=f"<native-{os_thread.id}>", native_id=os_thread.id))
        return records


DEFAULT_THREAD_LISTER: ThreadLister = PythonThreadLister()

THREAD_LISTERS: dict[str, type[ThreadLister]] = {
    "python": PythonThreadLister,
    "native": NativeThreadLister,
}


def thread_lister_by_name(name: str) -> ThreadLister:
    try:
        return THREAD_LISTERS[name]()
    except KeyError:
        raise ValueError(
            f"unknown thread lister '{name}' (expected one of: {sorted(THREAD_LISTERS)})"
        ) from None

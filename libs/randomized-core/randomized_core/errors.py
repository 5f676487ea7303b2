from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from randomized_core.threads import ThreadRecord


class HarnessError(Exception):
    """Base class of every error raised by the randomized harness."""


class ConfigurationError(HarnessError, ValueError):
    """A seed or locale supplied to the harness could not be understood.

    Raised while setting a suite up, before any test body runs.
    """


class ThreadLeakError(HarnessError, AssertionError):
    """One or more threads spawned by a test survived it and no filter accepted them."""

    test_name: str
    leaked: list["ThreadRecord"]

    def __init__(self, test_name: str, leaked: list["ThreadRecord"]):
        self.test_name = test_name
        self.leaked = list(leaked)
        names = ", ".join(f"[{t.name}]" for t in self.leaked)
        super().__init__(f"{len(self.leaked)} thread(s) leaked from test [{test_name}]: {names}")

    @property
    def thread_names(self) -> list[str]:
        return [t.name for t in self.leaked]


class AssumptionViolated(HarnessError):
    """A test body gave up on the current iteration, it is ignored rather than failed."""


def assume(condition: bool, message: str = "assumption violated"):
    """Abandon the current iteration unless `condition` holds."""
    if not condition:
        raise AssumptionViolated(message)

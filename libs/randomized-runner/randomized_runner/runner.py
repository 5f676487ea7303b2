import logging
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Callable, Iterable, Sequence

from randomized_core.errors import AssumptionViolated, ConfigurationError, ThreadLeakError
from randomized_core.filters import ThreadFilter
from randomized_core.lcg import LcgRandom
from randomized_core.leaks import LeakScope, ThreadLeakDetector
from randomized_core.locales import (
    Locale,
    get_default_locale,
    locale_scope,
    resolve_locale,
    validate_locale_config,
)
from randomized_core.seeds import SeedValue, derive_seed, new_stream, parse_seed, resolve_seed
from randomized_core.threads import ThreadLister, ThreadRecord
from randomized_runner.settings import DEFAULT_ITERATIONS, DEFAULT_LEAK_SCOPE, DEFAULT_LOCALE

logger = logging.getLogger("randomized")

# ---------------------------------------------------------------------------- #
#                            Configuration Records                             #
# ---------------------------------------------------------------------------- #


@dataclass(frozen=True)
class CaseConfig:
    """Per-test knobs: a pinned seed and the number of iterations."""

    seed: SeedValue | None = None
    repeat: int = DEFAULT_ITERATIONS

    def validate(self, name: str):
        if self.seed is not None:
            parse_seed(self.seed)
        if self.repeat < 1:
            raise ConfigurationError(f"test [{name}] needs at least 1 iteration, got {self.repeat}")


@dataclass(frozen=True)
class SuiteConfig:
    seed: SeedValue | None = None
    locale: str = DEFAULT_LOCALE
    filters: tuple[ThreadFilter, ...] = ()
    leak_scope: LeakScope = DEFAULT_LEAK_SCOPE


@dataclass(frozen=True)
class CaseContext:
    """What a test body gets to see for one iteration."""

    name: str
    iteration: int
    seed: int
    random: LcgRandom
    locale: Locale


@dataclass(frozen=True)
class RandomizedCase:
    name: str
    body: Callable[[CaseContext], object]
    config: CaseConfig = field(default_factory=CaseConfig)


# ---------------------------------------------------------------------------- #
#                                   Results                                    #
# ---------------------------------------------------------------------------- #


class CaseOutcome(StrEnum):
    CLEAN = "clean"
    IGNORED = "ignored"
    LEAKED = "leaked"
    FAILED = "failed"


@dataclass
class CaseResult:
    name: str
    iteration: int
    seed: int
    outcome: CaseOutcome
    error: BaseException | None = None
    leaked: list[ThreadRecord] = field(default_factory=list)
    delta_time: float = 0.0

    def is_failure(self) -> bool:
        return self.outcome in (CaseOutcome.LEAKED, CaseOutcome.FAILED)

    @property
    def leaked_names(self) -> list[str]:
        return [t.name for t in self.leaked]


@dataclass
class SuiteResult:
    seed: int
    locale: Locale
    results: list[CaseResult]

    @property
    def failures(self) -> list[CaseResult]:
        return [r for r in self.results if r.is_failure()]

    def count(self, outcome: CaseOutcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    def is_success(self) -> bool:
        return len(self.failures) == 0


# ---------------------------------------------------------------------------- #
#                               Test Invocation                                #
# ---------------------------------------------------------------------------- #


def iteration_seed(case: RandomizedCase, suite_seed: int, iteration: int) -> int:
    if case.config.seed is not None:
        return resolve_seed(case.config.seed)
    return derive_seed(suite_seed, case.name, iteration)


def run_test(
    case: RandomizedCase,
    suite_seed: int,
    filters: Iterable[ThreadFilter] = (),
    lister: ThreadLister | None = None,
    leak_scope: LeakScope = DEFAULT_LEAK_SCOPE,
) -> list[CaseResult]:
    """Run every iteration of `case`, one `CaseResult` per iteration.

    A pinned seed is used for every iteration, otherwise each iteration gets
    its own seed derived from the suite seed, the test name and the
    iteration number.
    """
    case.config.validate(case.name)
    filters = list(filters)
    results = []

    for iteration in range(case.config.repeat):
        seed = iteration_seed(case, suite_seed, iteration)
        context = CaseContext(
            name=case.name,
            iteration=iteration,
            seed=seed,
            random=new_stream(seed),
            locale=get_default_locale(),
        )
        logger.info(f"Starting test [{case.name}] iteration {iteration} with seed [{seed}]")

        detector = None
        if leak_scope == LeakScope.TEST:
            detector = ThreadLeakDetector(case.name, filters, lister)

        error: BaseException | None = None
        start_time = time.time()
        ignored = False
        try:
            case.body(context)
        except AssumptionViolated as err:
            ignored = True
            logger.info(f"test [{case.name}] iteration {iteration} ignored: {err}")
        except Exception as err:
            error = err
            logger.error(f"test [{case.name}] failed with seed [{seed}]: {err!r}")
        delta_time = time.time() - start_time

        leaked = detector.complete() if detector is not None else []

        if error is not None:
            outcome = CaseOutcome.FAILED
        elif leaked:
            outcome = CaseOutcome.LEAKED
            error = ThreadLeakError(case.name, leaked)
        elif ignored:
            outcome = CaseOutcome.IGNORED
        else:
            outcome = CaseOutcome.CLEAN

        results.append(CaseResult(case.name, iteration, seed, outcome, error, leaked, delta_time))
    return results


def run_suite(
    cases: Sequence[RandomizedCase],
    config: SuiteConfig | None = None,
    lister: ThreadLister | None = None,
) -> SuiteResult:
    """Run `cases` under one suite seed and one default locale.

    Configuration is checked before the first test runs. A failing test never
    stops the remaining ones and the previous default locale is restored on
    every exit path.
    """
    config = config or SuiteConfig()
    validate_locale_config(config.locale)
    for case in cases:
        case.config.validate(case.name)

    suite_seed = resolve_seed(config.seed)
    suite_locale = resolve_locale(config.locale, new_stream(suite_seed))

    results: list[CaseResult] = []
    with locale_scope(suite_locale):
        logger.info(f"Starting test suite with seed [{suite_seed}] and locale [{suite_locale.to_tag()}]")
        for case in cases:
            results.extend(run_test(case, suite_seed, config.filters, lister, config.leak_scope))

    suite_result = SuiteResult(suite_seed, suite_locale, results)
    logger.info(
        f"Finished test suite: {len(results)} run(s), {len(suite_result.failures)} failure(s)"
    )
    return suite_result

"""pytest plugin running every test with a reproducible seed and leak detection.

Enable it with `-p randomized_runner.plugin` or `pytest_plugins` in a
top-level conftest. Markers:

* `@pytest.mark.seed(12345)` pins the seed of a test
* `@pytest.mark.repeat(5)` runs a test several times, each with its own seed
  unless the seed is pinned
* `@pytest.mark.thread_leak_filters(filters=[FriendlyZombieFilter])` lets the
  matching threads outlive the test, filters are passed by keyword
* `@pytest.mark.thread_leak_scope("none")` disables leak detection
"""

import importlib
import logging
import os
from contextlib import ExitStack
from dataclasses import dataclass, field

import pytest

from randomized_core.errors import AssumptionViolated, ConfigurationError
from randomized_core.filters import ThreadFilter, as_thread_filter
from randomized_core.lcg import LcgRandom
from randomized_core.leaks import LeakScope, ThreadLeakDetector
from randomized_core.locales import Locale, get_default_locale, locale_scope, resolve_locale
from randomized_core.seeds import derive_seed, new_stream, parse_seed, resolve_seed
from randomized_core.threads import THREAD_LISTERS, ThreadLister, thread_lister_by_name
from randomized_runner.report import ReportRenderer
from randomized_runner.settings import (
    DEFAULT_ITERATIONS,
    DEFAULT_LEAK_SCOPE,
    DEFAULT_LOCALE,
    DEFAULT_THREAD_LISTER,
    ENV_ITERATIONS,
    ENV_LOCALE,
    ENV_SEED,
    THREAD_FILTERS_INI,
)

logger = logging.getLogger("randomized")


@dataclass
class HarnessState:
    seed: int
    locale: Locale
    iterations: int
    leak_scope: LeakScope
    lister: ThreadLister
    filters: list[ThreadFilter]
    renderer: ReportRenderer = field(default_factory=ReportRenderer)
    exit_stack: ExitStack = field(default_factory=ExitStack)
    reproduce_lines: dict[str, str] = field(default_factory=dict)


STATE_KEY = pytest.StashKey[HarnessState]()
SEED_KEY = pytest.StashKey[int]()


# ---------------------------------------------------------------------------- #
#                                Configuration                                 #
# ---------------------------------------------------------------------------- #


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("randomized", "randomized testing")
    group.addoption(
        "--randomized-seed",
        action="store",
        metavar="SEED",
        default=os.getenv(ENV_SEED),
        help=f"suite seed, decimal or 0x-hex; random if omitted (env: {ENV_SEED})",
    )
    group.addoption(
        "--randomized-repeat",
        action="store",
        metavar="N",
        default=os.getenv(ENV_ITERATIONS),
        help=f"run every test N times (env: {ENV_ITERATIONS}, default: {DEFAULT_ITERATIONS})",
    )
    group.addoption(
        "--randomized-locale",
        action="store",
        metavar="TAG",
        default=os.getenv(ENV_LOCALE, DEFAULT_LOCALE),
        help=f"default locale of the suite, 'random' or a language tag (env: {ENV_LOCALE})",
    )
    group.addoption(
        "--thread-leak-scope",
        action="store",
        choices=[s.value for s in LeakScope],
        default=DEFAULT_LEAK_SCOPE.value,
        help="'test' fails tests leaving threads behind, 'none' disables the check",
    )
    group.addoption(
        "--thread-lister",
        action="store",
        choices=sorted(THREAD_LISTERS),
        default=DEFAULT_THREAD_LISTER,
        help="'python' looks at threading threads, 'native' at every OS thread",
    )
    parser.addini(
        THREAD_FILTERS_INI,
        type="linelist",
        default=[],
        help="thread filters applied to every test, one 'module:attribute' per line",
    )


def load_thread_filter(reference: str) -> ThreadFilter:
    module_name, sep, attribute = reference.partition(":")
    if not sep:
        module_name, _, attribute = reference.rpartition(".")
    if not module_name or not attribute:
        raise ConfigurationError(f"thread filter '{reference}' is not of the form 'module:attribute'")
    module = importlib.import_module(module_name)
    try:
        candidate = getattr(module, attribute)
    except AttributeError:
        raise ConfigurationError(f"module '{module_name}' has no thread filter '{attribute}'") from None
    return as_thread_filter(candidate)


def parse_iterations(raw: str | int | None) -> int:
    if raw is None or raw == "":
        return DEFAULT_ITERATIONS
    try:
        iterations = int(raw)
    except ValueError:
        raise ConfigurationError(f"malformed iteration count {raw!r}") from None
    if iterations < 1:
        raise ConfigurationError(f"iteration count must be at least 1, got {iterations}")
    return iterations


def build_state(config: pytest.Config) -> HarnessState:
    seed = resolve_seed(config.getoption("randomized_seed"))
    locale = resolve_locale(config.getoption("randomized_locale"), new_stream(seed))
    return HarnessState(
        seed=seed,
        locale=locale,
        iterations=parse_iterations(config.getoption("randomized_repeat")),
        leak_scope=LeakScope(config.getoption("thread_leak_scope")),
        lister=thread_lister_by_name(config.getoption("thread_lister")),
        filters=[load_thread_filter(ref) for ref in config.getini(THREAD_FILTERS_INI)],
    )


@pytest.hookimpl(tryfirst=True)
def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "seed(value): pin the seed of the test")
    config.addinivalue_line("markers", "repeat(iterations): run the test several times")
    config.addinivalue_line(
        "markers", "thread_leak_filters(filters=[...]): threads allowed to outlive the test"
    )
    config.addinivalue_line(
        "markers", "thread_leak_scope(scope): 'test' to detect leaked threads, 'none' to skip"
    )
    try:
        config.stash[STATE_KEY] = build_state(config)
    except (ConfigurationError, ImportError, TypeError) as err:
        raise pytest.UsageError(f"randomized: {err}") from err


def register_thread_filter(config: pytest.Config, thread_filter: object) -> ThreadFilter:
    """Add a filter applied to every test of the run."""
    normalized = as_thread_filter(thread_filter)
    config.stash[STATE_KEY].filters.append(normalized)
    return normalized


def pytest_report_header(config: pytest.Config) -> str | None:
    state = config.stash.get(STATE_KEY, None)
    if state is None:
        return None
    return (
        f"randomized: seed={state.seed}, locale={state.locale.to_tag()}, "
        f"iterations={state.iterations}, thread-leak-scope={state.leak_scope}"
    )


# ---------------------------------------------------------------------------- #
#                                Suite Lifecycle                               #
# ---------------------------------------------------------------------------- #


def pytest_sessionstart(session: pytest.Session) -> None:
    state = session.config.stash[STATE_KEY]
    state.exit_stack.enter_context(locale_scope(state.locale))
    logger.info(f"Starting test suite with seed [{state.seed}] and locale [{state.locale.to_tag()}]")


def pytest_unconfigure(config: pytest.Config) -> None:
    state = config.stash.get(STATE_KEY, None)
    if state is not None:
        state.exit_stack.close()


# ---------------------------------------------------------------------------- #
#                              Repetition & Seeds                              #
# ---------------------------------------------------------------------------- #


def marker_value(marker: pytest.Mark, keyword: str):
    if marker.args:
        return marker.args[0]
    if keyword in marker.kwargs:
        return marker.kwargs[keyword]
    raise ConfigurationError(f"marker '{marker.name}' needs a '{keyword}' argument")


def marker_iterations(marker: pytest.Mark | None, default: int) -> int:
    if marker is None:
        return default
    return parse_iterations(marker_value(marker, "iterations"))


def pytest_generate_tests(metafunc: pytest.Metafunc) -> None:
    state = metafunc.config.stash[STATE_KEY]
    try:
        iterations = marker_iterations(
            metafunc.definition.get_closest_marker("repeat"), state.iterations
        )
    except ConfigurationError:
        # reported as a usage error once collection is done
        return
    if iterations > 1:
        if "randomized_iteration" not in metafunc.fixturenames:
            metafunc.fixturenames.append("randomized_iteration")
        metafunc.parametrize(
            "randomized_iteration",
            range(iterations),
            indirect=True,
            ids=lambda i: f"iteration-{i}",
        )


def validate_item_markers(item: pytest.Item):
    marker = item.get_closest_marker("seed")
    if marker is not None:
        parse_seed(marker_value(marker, "value"))
    marker_iterations(item.get_closest_marker("repeat"), DEFAULT_ITERATIONS)
    item_leak_scope(item)
    item_filters(item)


def pytest_collection_modifyitems(
    session: pytest.Session, config: pytest.Config, items: list[pytest.Item]
) -> None:
    for item in items:
        try:
            validate_item_markers(item)
        except (ConfigurationError, TypeError) as err:
            raise pytest.UsageError(f"{item.nodeid}: {err}") from err


def item_seed(item: pytest.Item) -> int:
    """Pinned seed of the item, or one derived from the suite seed and its node id."""
    if SEED_KEY not in item.stash:
        marker = item.get_closest_marker("seed")
        if marker is not None:
            seed = resolve_seed(marker_value(marker, "value"))
        else:
            seed = derive_seed(item.config.stash[STATE_KEY].seed, item.nodeid)
        item.stash[SEED_KEY] = seed
    return item.stash[SEED_KEY]


@pytest.hookimpl(tryfirst=True)
def pytest_runtest_setup(item: pytest.Item) -> None:
    seed = item_seed(item)
    item.user_properties.append(("randomized_seed", seed))
    logger.info(f"Starting test [{item.nodeid}] with seed [{seed}]")


@pytest.fixture
def randomized_iteration(request: pytest.FixtureRequest) -> int:
    return getattr(request, "param", 0)


@pytest.fixture
def randomized_seed(request: pytest.FixtureRequest) -> int:
    return item_seed(request.node)


@pytest.fixture
def random_stream(randomized_seed: int) -> LcgRandom:
    """A fresh stream owned by the requesting test."""
    return new_stream(randomized_seed)


@pytest.fixture
def randomized_locale() -> Locale:
    return get_default_locale()


# ---------------------------------------------------------------------------- #
#                             Thread Leak Detection                            #
# ---------------------------------------------------------------------------- #


def item_filters(item: pytest.Item) -> list[ThreadFilter]:
    filters = list(item.config.stash[STATE_KEY].filters)
    for marker in item.iter_markers("thread_leak_filters"):
        candidates = [*marker.args, *marker.kwargs.get("filters", ())]
        filters.extend(as_thread_filter(candidate) for candidate in candidates)
    return filters


def item_leak_scope(item: pytest.Item) -> LeakScope:
    marker = item.get_closest_marker("thread_leak_scope")
    if marker is None:
        return item.config.stash[STATE_KEY].leak_scope
    value = marker_value(marker, "scope")
    try:
        return LeakScope(value)
    except ValueError:
        raise ConfigurationError(
            f"unknown thread leak scope {value!r} (expected one of: {[s.value for s in LeakScope]})"
        ) from None


@pytest.hookimpl(wrapper=True)
def pytest_runtest_call(item: pytest.Item):
    if item_leak_scope(item) == LeakScope.NONE:
        try:
            return (yield)
        except AssumptionViolated as err:
            pytest.skip(f"assumption violated: {err}")

    detector = ThreadLeakDetector(item.nodeid, item_filters(item), item.config.stash[STATE_KEY].lister)
    try:
        result = yield
    except AssumptionViolated as err:
        detector.check()
        pytest.skip(f"assumption violated: {err}")
    except BaseException:
        # the test's own failure is reported, leaks are only logged
        detector.complete()
        raise
    detector.check()
    return result


# ---------------------------------------------------------------------------- #
#                                  Reporting                                   #
# ---------------------------------------------------------------------------- #


@pytest.hookimpl(wrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo):
    report = yield
    state = item.config.stash.get(STATE_KEY, None)
    if state is not None and report.failed and SEED_KEY in item.stash:
        line = state.renderer.render_reproduce(
            state.seed, state.locale, nodeid=item.nodeid, seed=item.stash[SEED_KEY]
        )
        report.sections.append(("randomized", line))
        state.reproduce_lines[item.nodeid] = line
    return report


def pytest_terminal_summary(terminalreporter, exitstatus: int, config: pytest.Config) -> None:
    state = config.stash.get(STATE_KEY, None)
    if state is None or not state.reproduce_lines:
        return
    terminalreporter.write_sep("=", "randomized reproduce")
    for line in state.reproduce_lines.values():
        terminalreporter.write_line(line)

from randomized_core.leaks import LeakScope

#
# Environment fallbacks of the command line options
#

ENV_SEED = "TESTS_SEED"
ENV_ITERATIONS = "TESTS_ITERS"
ENV_LOCALE = "TESTS_LOCALE"

#
# Defaults
#

DEFAULT_LOCALE = "random"
DEFAULT_ITERATIONS = 1
DEFAULT_LEAK_SCOPE = LeakScope.TEST
DEFAULT_THREAD_LISTER = "python"

#
# Logging
#

LOGGER_PREFIX = "randomized"

#
# pytest integration
#

PLUGIN_MODULE = "randomized_runner.plugin"
THREAD_FILTERS_INI = "randomized_thread_filters"

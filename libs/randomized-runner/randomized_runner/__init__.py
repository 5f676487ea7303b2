"""Test runners on top of randomized-core: explicit-record suites, the pytest
plugin and the `randomized-test` command line.
"""

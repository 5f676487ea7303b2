#!/usr/bin/env python3

import argparse
import logging

import pytest

from randomized_core.errors import ConfigurationError
from randomized_core.leaks import LeakScope
from randomized_core.locales import resolve_locale
from randomized_core.seeds import new_stream, resolve_seed
from randomized_core.threads import THREAD_LISTERS
from randomized_runner.settings import (
    DEFAULT_ITERATIONS,
    DEFAULT_LEAK_SCOPE,
    DEFAULT_LOCALE,
    DEFAULT_THREAD_LISTER,
    LOGGER_PREFIX,
    PLUGIN_MODULE,
)

logger = logging.getLogger("randomized")


class RandomizedClient:
    """Command line front end: runs pytest with the randomized plugin and
    resolves seeds and locales the same way a test run would.
    """

    logger_prefix: str
    verbosity: int
    seed: int | None

    argument_parser: argparse.ArgumentParser
    args: argparse.Namespace

    def __init__(self, logger_prefix: str = LOGGER_PREFIX):
        self.logger_prefix = logger_prefix
        self.verbosity = 1
        self.seed = None
        self.argument_parser = self.generate_parser()
        self.args = argparse.Namespace()

    def set_logger_config(self):
        logger = logging.getLogger("randomized")
        logger.propagate = False
        verbosity = min(max(0, self.verbosity), 2)
        logging_level = {0: logging.ERROR, 1: logging.INFO, 2: logging.DEBUG}.get(
            verbosity, logging.ERROR
        )
        logger.setLevel(logging.DEBUG)

        console_handler = logging.StreamHandler()
        formatter = logging.Formatter(
            f"[{self.logger_prefix} %(asctime)s ~ %(levelname)s]: %(message)s"
        )
        console_handler.setFormatter(formatter)
        console_handler.setLevel(logging_level)
        logger.addHandler(console_handler)

    def add_shared_flags(self, subparser: argparse.ArgumentParser):
        """Flags shared between all subcommands"""
        subparser.add_argument("-v", "--verbosity", default=1, choices=[0, 1, 2], type=int)
        subparser.add_argument(
            "-s", "--seed", metavar="SEED", type=str, help="suite seed, decimal or 0x-hex"
        )

    def generate_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="randomized-test",
            description="Reproducible randomized test runs with thread leak detection",
        )
        subparsers = parser.add_subparsers(required=True, dest="command")

        # --- Subcommand: run ---
        run_parser = subparsers.add_parser("run", help="Run pytest with the randomized plugin")
        self.add_shared_flags(run_parser)
        run_parser.add_argument(
            "--repeat", type=int, default=DEFAULT_ITERATIONS, help="iterations of every test"
        )
        run_parser.add_argument(
            "--locale", type=str, default=DEFAULT_LOCALE, help="'random' or a language tag"
        )
        run_parser.add_argument(
            "--thread-leak-scope",
            choices=[s.value for s in LeakScope],
            default=DEFAULT_LEAK_SCOPE.value,
        )
        run_parser.add_argument(
            "--thread-lister", choices=sorted(THREAD_LISTERS), default=DEFAULT_THREAD_LISTER
        )
        run_parser.add_argument(
            "pytest_args", nargs=argparse.REMAINDER, help="arguments passed on to pytest"
        )

        # --- Subcommand: seed ---
        seed_parser = subparsers.add_parser("seed", help="Resolve a seed and show its first draws")
        self.add_shared_flags(seed_parser)
        seed_parser.add_argument("--draws", type=int, default=3, help="number of draws to show")

        # --- Subcommand: locale ---
        locale_parser = subparsers.add_parser("locale", help="Resolve a locale configuration")
        self.add_shared_flags(locale_parser)
        locale_parser.add_argument("locale", nargs="?", default=DEFAULT_LOCALE)

        return parser

    def start(self, argv: list[str] | None = None) -> int:
        self.args = self.argument_parser.parse_args(argv)
        self.verbosity = self.args.verbosity
        self.set_logger_config()

        try:
            self.seed = resolve_seed(self.args.seed)
        except ConfigurationError as err:
            self.argument_parser.error(str(err))

        # Command Dispatch
        match self.args.command:
            case "run":
                return self.run()
            case "seed":
                return self.show_seed()
            case "locale":
                return self.show_locale()
        return 2

    def build_pytest_args(self) -> list[str]:
        if self.args.repeat < 1:
            self.argument_parser.error("--repeat requires at least 1 iteration!")
        pytest_args = list(self.args.pytest_args)
        if pytest_args and pytest_args[0] == "--":
            pytest_args = pytest_args[1:]
        return [
            "-p",
            PLUGIN_MODULE,
            f"--randomized-seed={self.seed}",
            f"--randomized-repeat={self.args.repeat}",
            f"--randomized-locale={self.args.locale}",
            f"--thread-leak-scope={self.args.thread_leak_scope}",
            f"--thread-lister={self.args.thread_lister}",
            *pytest_args,
        ]

    def run(self) -> int:
        pytest_args = self.build_pytest_args()
        logger.info(f"=== Start {self.logger_prefix} Test Run ===")
        logger.info(f" * seed: {self.seed}")
        logger.info(f" * iterations: {self.args.repeat}")
        logger.info(f" * locale: {self.args.locale}")
        logger.info("===")
        exit_code = int(pytest.main(pytest_args))
        logger.info(f"=== End {self.logger_prefix} Test Run (exit {exit_code}) ===")
        return exit_code

    def show_seed(self) -> int:
        assert self.seed is not None, "no seed resolved"
        stream = new_stream(self.seed)
        print(f"seed: {self.seed}")
        for index in range(max(0, self.args.draws)):
            print(f"draw {index}: {stream.next_int()}")
        return 0

    def show_locale(self) -> int:
        assert self.seed is not None, "no seed resolved"
        try:
            locale = resolve_locale(self.args.locale, new_stream(self.seed))
        except ConfigurationError as err:
            self.argument_parser.error(str(err))
        print(locale.to_tag())
        return 0


def main(argv: list[str] | None = None) -> int:
    return RandomizedClient().start(argv)


if __name__ == "__main__":
    raise SystemExit(main())

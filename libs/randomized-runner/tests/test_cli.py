import logging

import pytest

from randomized_core import leaks, locales, seeds
from randomized_runner import cli, plugin, runner
from randomized_runner.cli import RandomizedClient, main


@pytest.fixture(autouse=True)
def restore_logger():
    logger = logging.getLogger("randomized")
    handlers, propagate, level = list(logger.handlers), logger.propagate, logger.level
    yield
    logger.handlers = handlers
    logger.propagate = propagate
    logger.setLevel(level)


def test_seed_command_prints_golden_draws(capsys):
    assert main(["seed", "-s", "12345", "--draws", "1", "-v", "0"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out == ["seed: 12345", "draw 0: 1553932502"]


def test_seed_command_accepts_hex(capsys):
    assert main(["seed", "-s", "0x3039", "--draws", "0", "-v", "0"]) == 0
    assert capsys.readouterr().out.splitlines() == ["seed: 12345"]


def test_locale_command(capsys):
    assert main(["locale", "EN-us", "-v", "0"]) == 0
    assert capsys.readouterr().out.strip() == "en-US"


def test_random_locale_follows_the_seed(capsys):
    main(["locale", "random", "-s", "5", "-v", "0"])
    first = capsys.readouterr().out
    main(["locale", "random", "-s", "5", "-v", "0"])
    assert capsys.readouterr().out == first


@pytest.mark.parametrize(
    "argv",
    [
        ["seed", "-s", "nope", "-v", "0"],
        ["locale", "en_US", "-v", "0"],
        ["run", "-v", "0", "--repeat", "0"],
    ],
)
def test_bad_input_is_an_argument_error(argv):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    assert excinfo.value.code == 2


def test_run_passes_options_to_pytest(monkeypatch):
    captured = {}

    def fake_main(args):
        captured["args"] = args
        return 1

    monkeypatch.setattr(cli.pytest, "main", fake_main)
    exit_code = main(
        ["run", "-s", "7", "-v", "0", "--repeat", "2", "--locale", "de-DE", "--", "tests", "-x"]
    )

    assert exit_code == 1
    args = captured["args"]
    assert args[:2] == ["-p", "randomized_runner.plugin"]
    assert "--randomized-seed=7" in args
    assert "--randomized-repeat=2" in args
    assert "--randomized-locale=de-DE" in args
    assert "--thread-leak-scope=test" in args
    assert "--thread-lister=python" in args
    assert args[-2:] == ["tests", "-x"]


def test_run_without_seed_uses_a_fresh_one(monkeypatch):
    captured = {}

    def fake_main(args):
        captured["args"] = args
        return 0

    monkeypatch.setattr(cli.pytest, "main", fake_main)

    client = RandomizedClient()
    client.start(["run", "-v", "0"])

    seed_args = [a for a in captured["args"] if a.startswith("--randomized-seed=")]
    assert seed_args == [f"--randomized-seed={client.seed}"]


def test_cli_configures_the_logger_of_every_module():
    main(["seed", "-s", "1", "--draws", "0", "-v", "2"])

    configured = logging.getLogger("randomized")
    assert configured.handlers
    for module in (seeds, leaks, locales, runner, plugin, cli):
        assert module.logger is configured

import logging

import pytest

from thermodash.misc.argparser import get_cli_args


def test_defaults():
    args = get_cli_args([])
    assert args.host == "0.0.0.0"
    assert args.port is None
    assert args.auto_reconnect is None
    assert args.log_level == logging.INFO


def test_log_level_abbreviations():
    assert get_cli_args(["-l", "DBG"]).log_level == logging.DEBUG
    assert get_cli_args(["--log-level", "ERR", "-H", "127.0.0.1"]) == ("127.0.0.1", None, None, logging.ERROR)


def test_overrides():
    args = get_cli_args(["-p", "9000", "--auto-reconnect"])
    assert args.port == 9000
    assert args.auto_reconnect is True


@pytest.mark.parametrize("argv", [["-l", "LOUD"], ["-p", "0"], ["--port", "http"]])
def test_bad_arguments_exit(argv):
    with pytest.raises(SystemExit):
        get_cli_args(argv)

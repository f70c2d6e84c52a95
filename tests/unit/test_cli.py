"""Unit tests for the command-line entry points."""

from __future__ import annotations

from argparse import Namespace

import pytest

from talkbridge.cli import (
    argsWithLogLevel_apply,
    arguments_parse,
    clientMode_isEnabled,
    logLevelOverride_get,
)
from talkbridge.client.client_cli import arguments_parse as clientArguments_parse
from talkbridge.client.client_cli import serverAddress_parse
from talkbridge.server.server_cli import arguments_parse as relayArguments_parse
from talkbridge.supervisor.main import arguments_parse as supervisorArguments_parse


def levels(**flags: bool) -> Namespace:
    values = {"debug": False, "info": False, "warning": False, "error": False, "critical": False}
    values.update(flags)
    return Namespace(**values)


class TestLogLevelOverride:
    """Tests for CLI log-level precedence."""

    def test_info_overrides_debug_when_both_set(self) -> None:
        """
        `--info` should suppress debug noise when both flags are present.

        Returns:
            None.
        """
        assert logLevelOverride_get(levels(debug=True, info=True)) == "INFO"

    def test_error_wins(self) -> None:
        """More restrictive levels take precedence."""
        assert logLevelOverride_get(levels(debug=True, warning=True, error=True)) == "ERROR"

    def test_no_flags(self) -> None:
        """No flag leaves the config level in charge."""
        assert logLevelOverride_get(levels()) is None

    def test_override_applied_to_args(self) -> None:
        """The resolved level lands on args.log_level."""
        args = Namespace()
        argsWithLogLevel_apply(args, "DEBUG")
        assert args.log_level == "DEBUG"


class TestModeSelection:
    """Tests for relay / client / supervisor selection."""

    def test_default_is_relay(self) -> None:
        """No --server and no --supervise runs the relay."""
        args = arguments_parse([])
        assert not clientMode_isEnabled(args)
        assert not args.supervise

    def test_server_selects_client(self) -> None:
        """--server switches to client mode."""
        args = arguments_parse(["--server", "192.168.1.2:3001", "--role", "mobile", "--mode", "usb"])
        assert clientMode_isEnabled(args)
        assert args.role == "mobile"
        assert args.mode == "usb"

    def test_supervise_flag(self) -> None:
        """--supervise selects the supervisor."""
        args = arguments_parse(["--supervise", "--run-mode", "packaged", "--port", "4000"])
        assert args.supervise
        assert args.run_mode == "packaged"
        assert args.port == 4000

    def test_invalid_role_rejected(self) -> None:
        """Unknown roles fail argument parsing."""
        with pytest.raises(SystemExit):
            arguments_parse(["--server", "h:1", "--role", "tablet"])


class TestSubcommandParsers:
    """Tests for the per-component parsers."""

    def test_relay_parser(self) -> None:
        """Relay parser accepts host, port and log level."""
        args = relayArguments_parse(["--host", "127.0.0.1", "--port", "0", "--log-level", "DEBUG"])
        assert args.host == "127.0.0.1"
        assert args.port == 0
        assert args.log_level == "DEBUG"

    def test_client_parser(self) -> None:
        """Client parser accepts identity flags."""
        args = clientArguments_parse(["--server", "h:1", "--role", "desktop", "--auto-fill"])
        assert args.server == "h:1"
        assert args.role == "desktop"
        assert args.auto_fill

    def test_supervisor_parser(self) -> None:
        """Supervisor parser accepts run mode."""
        args = supervisorArguments_parse(["--run-mode", "development"])
        assert args.run_mode == "development"


class TestServerAddressParse:
    """Tests for relay address parsing."""

    def test_host_port(self) -> None:
        """Plain host:port."""
        assert serverAddress_parse("192.168.1.5:3001") == ("192.168.1.5", 3001)

    def test_banner_url(self) -> None:
        """The http:// form printed in the relay banner."""
        assert serverAddress_parse("http://192.168.1.5:3001/") == ("192.168.1.5", 3001)

    def test_missing_port(self) -> None:
        """A bare host is rejected."""
        with pytest.raises(ValueError, match="host:port"):
            serverAddress_parse("localhost")

    def test_bad_port(self) -> None:
        """A non-numeric port is rejected."""
        with pytest.raises(ValueError, match="Invalid port"):
            serverAddress_parse("localhost:abc")

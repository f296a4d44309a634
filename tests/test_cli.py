"""Unit tests for CLI commands in solomail/cli/commands.py."""

from contextlib import contextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import typer
from rich.panel import Panel
from rich.table import Table

import solomail.cli.commands as commands
from solomail.auth.outcomes import AccountIdentity, AuthCancelled, AuthError, AuthSuccess, UnauthorizedAccount
from solomail.mail.models import Message
from solomail.mail.results import ApiError, NetworkError, Ok

ACCOUNT = AccountIdentity(
    username="a@b.com",
    authority="login.microsoftonline.com",
    tenant_id="tenant",
    home_account_id="uid.utid",
)


def make_settings() -> MagicMock:
    settings = MagicMock()
    settings.mail = SimpleNamespace(allowed_account="a@b.com", page_size=25, max_cached_messages=100)
    settings.storage = SimpleNamespace(auth_record_file="/tmp/solomail/auth_record.json")
    settings.setup_logging = MagicMock()
    settings.ensure_directories = MagicMock()
    return settings


def make_gate(signed_in: bool = True) -> MagicMock:
    gate = MagicMock()
    gate.initialize = AsyncMock(return_value=(True, None))
    gate.is_signed_in = signed_in
    gate.current_username = "a@b.com" if signed_in else None
    gate.sign_in_interactive = AsyncMock(return_value=_success())
    gate.acquire_token_silent = AsyncMock(return_value=_success())
    gate.sign_out = AsyncMock(return_value=(True, None))
    return gate


def make_gateway() -> MagicMock:
    gateway = MagicMock()
    gateway.list_inbox = AsyncMock()
    gateway.get_message = AsyncMock()
    gateway.send_mail = AsyncMock(return_value=Ok(None))
    gateway.close = AsyncMock()
    return gateway


def _success() -> AuthSuccess:
    return AuthSuccess(access_token="token", expires_on=1_900_000_000, account=ACCOUNT)


@contextmanager
def _patched(gate, gateway=None):
    """Patch settings, gate and gateway construction inside the commands module."""
    with (
        patch("solomail.cli.commands.get_settings", return_value=make_settings()),
        patch("solomail.cli.commands.IdentityGate") as gate_class,
        patch("solomail.cli.commands.MailGateway") as gateway_class,
    ):
        gate_class.from_settings.return_value = gate
        gateway_class.from_settings.return_value = gateway or make_gateway()
        yield


class TestLogin:
    def test_signs_in(self) -> None:
        gate = make_gate(signed_in=False)

        with _patched(gate), patch("solomail.cli.commands.console") as mock_console:
            commands.login()

        gate.sign_in_interactive.assert_awaited_once_with(prompt_callback=commands._show_device_code)
        mock_console.print.assert_called()

    def test_already_signed_in_declines(self) -> None:
        gate = make_gate(signed_in=True)

        with (
            _patched(gate),
            patch("solomail.cli.commands.typer.confirm", return_value=False),
            patch("solomail.cli.commands.console"),
        ):
            commands.login()

        gate.sign_out.assert_not_awaited()
        gate.sign_in_interactive.assert_not_awaited()

    def test_already_signed_in_reauthenticates(self) -> None:
        gate = make_gate(signed_in=True)

        with (
            _patched(gate),
            patch("solomail.cli.commands.typer.confirm", return_value=True),
            patch("solomail.cli.commands.console"),
        ):
            commands.login()

        gate.sign_out.assert_awaited_once()
        gate.sign_in_interactive.assert_awaited_once()

    def test_wrong_account_exits(self) -> None:
        gate = make_gate(signed_in=False)
        gate.sign_in_interactive.return_value = UnauthorizedAccount("Only a@b.com is allowed to sign in")

        with _patched(gate), patch("solomail.cli.commands.console") as mock_console:
            with pytest.raises(typer.Exit) as exc_info:
                commands.login()

        assert exc_info.value.exit_code == 1
        panel = mock_console.print.call_args.args[0]
        assert isinstance(panel, Panel)
        assert "Only a@b.com is allowed to sign in" in str(panel.renderable)

    def test_cancelled_does_not_exit(self) -> None:
        gate = make_gate(signed_in=False)
        gate.sign_in_interactive.return_value = AuthCancelled()

        with _patched(gate), patch("solomail.cli.commands.console") as mock_console:
            commands.login()

        mock_console.print.assert_called_once_with("[yellow]Sign-in cancelled[/yellow]")

    def test_error_exits(self) -> None:
        gate = make_gate(signed_in=False)
        gate.sign_in_interactive.return_value = AuthError("Sign-in error: invalid_client")

        with _patched(gate), patch("solomail.cli.commands.console"):
            with pytest.raises(typer.Exit):
                commands.login()

    def test_initialize_failure_exits(self) -> None:
        gate = make_gate(signed_in=False)
        gate.initialize.return_value = (False, "No allowed account configured.")

        with _patched(gate), patch("solomail.cli.commands.console") as mock_console:
            with pytest.raises(typer.Exit):
                commands.login()

        gate.sign_in_interactive.assert_not_awaited()
        mock_console.print.assert_called()

    def test_unexpected_error_exits(self) -> None:
        with (
            patch("solomail.cli.commands.get_settings", side_effect=Exception("boom")),
            patch("solomail.cli.commands.console") as mock_console,
        ):
            with pytest.raises(typer.Exit):
                commands.login()
            mock_console.print.assert_called()


class TestLogout:
    def test_signs_out(self) -> None:
        gate = make_gate(signed_in=True)

        with _patched(gate), patch("solomail.cli.commands.console") as mock_console:
            commands.logout()

        gate.sign_out.assert_awaited_once()
        mock_console.print.assert_called()

    def test_no_active_session(self) -> None:
        gate = make_gate(signed_in=False)

        with _patched(gate), patch("solomail.cli.commands.console") as mock_console:
            commands.logout()

        gate.sign_out.assert_not_awaited()
        mock_console.print.assert_called()

    def test_sign_out_failure_exits(self) -> None:
        gate = make_gate(signed_in=True)
        gate.sign_out.return_value = (False, "Sign-out error: read-only")

        with _patched(gate), patch("solomail.cli.commands.console"):
            with pytest.raises(typer.Exit):
                commands.logout()


def test_status_renders_panel() -> None:
    gate = make_gate(signed_in=True)

    with _patched(gate), patch("solomail.cli.commands.console") as mock_console:
        commands.status()

    panel = mock_console.print.call_args.args[0]
    assert isinstance(panel, Panel)
    assert panel.title == "Status"


class TestInbox:
    def test_lists_first_page(self, page_factory) -> None:
        gateway = make_gateway()
        gateway.list_inbox.return_value = Ok(page_factory(0, 3, None))

        with _patched(make_gate(), gateway), patch("solomail.cli.commands.console") as mock_console:
            commands.inbox(pages=1, ids=False)

        gateway.list_inbox.assert_awaited_once_with("token", None)
        gateway.close.assert_awaited_once()
        printed = [call.args[0] for call in mock_console.print.call_args_list if call.args]
        assert any(isinstance(item, Table) and item.row_count == 3 for item in printed)

    def test_loads_extra_pages(self, page_factory) -> None:
        gateway = make_gateway()
        gateway.list_inbox.side_effect = [
            Ok(page_factory(0, 25, "cursor-1")),
            Ok(page_factory(25, 25, "cursor-2")),
        ]

        with _patched(make_gate(), gateway), patch("solomail.cli.commands.console") as mock_console:
            commands.inbox(pages=2, ids=True)

        assert gateway.list_inbox.await_args_list[1].args == ("token", "cursor-1")
        printed = [call.args[0] for call in mock_console.print.call_args_list if call.args]
        table = next(item for item in printed if isinstance(item, Table))
        assert table.row_count == 50
        assert table.columns[0].header == "ID"

    def test_empty_inbox(self, page_factory) -> None:
        gateway = make_gateway()
        gateway.list_inbox.return_value = Ok(page_factory(0, 0, None))

        with _patched(make_gate(), gateway), patch("solomail.cli.commands.console") as mock_console:
            commands.inbox(pages=1, ids=False)

        mock_console.print.assert_any_call("[yellow]Your inbox is empty.[/yellow]")

    def test_sign_in_required_and_declined(self) -> None:
        gate = make_gate(signed_in=False)
        gate.acquire_token_silent.return_value = AuthError("No account signed in")
        gateway = make_gateway()

        with (
            _patched(gate, gateway),
            patch("solomail.cli.commands.typer.confirm", return_value=False),
            patch("solomail.cli.commands.console"),
        ):
            with pytest.raises(typer.Exit):
                commands.inbox(pages=1, ids=False)

        gateway.list_inbox.assert_not_awaited()
        gateway.close.assert_awaited_once()

    def test_sign_in_required_then_retried(self, page_factory) -> None:
        gate = make_gate(signed_in=False)
        gate.acquire_token_silent.side_effect = [AuthError("No account signed in"), _success()]
        gateway = make_gateway()
        gateway.list_inbox.return_value = Ok(page_factory(0, 2, None))

        with (
            _patched(gate, gateway),
            patch("solomail.cli.commands.typer.confirm", return_value=True),
            patch("solomail.cli.commands.console"),
        ):
            commands.inbox(pages=1, ids=False)

        gate.sign_in_interactive.assert_awaited_once()
        gateway.list_inbox.assert_awaited_once_with("token", None)

    @pytest.mark.parametrize(
        "error, text",
        [(NetworkError("offline"), "Network error: offline"), (ApiError(503, "Unavailable"), "API error (503)")],
    )
    def test_transient_error_exits_with_retry_hint(self, error, text) -> None:
        gateway = make_gateway()
        gateway.list_inbox.return_value = error

        with _patched(make_gate(), gateway), patch("solomail.cli.commands.console") as mock_console:
            with pytest.raises(typer.Exit):
                commands.inbox(pages=1, ids=False)

        panel = mock_console.print.call_args.args[0]
        assert text in str(panel.renderable)
        assert "retry" in str(panel.renderable)


def test_read_renders_message(graph_message) -> None:
    gateway = make_gateway()
    gateway.get_message.return_value = Ok(Message.from_graph_message(graph_message))

    with _patched(make_gate(), gateway), patch("solomail.cli.commands.console") as mock_console:
        commands.read("msg-1")

    gateway.get_message.assert_awaited_once_with("token", "msg-1")
    panel = mock_console.print.call_args.args[0]
    assert isinstance(panel, Panel)
    assert panel.title == "Status update"


class TestSend:
    def test_sends(self) -> None:
        gateway = make_gateway()

        with _patched(make_gate(), gateway), patch("solomail.cli.commands.console") as mock_console:
            commands.send(to="bob@example.com", subject="Hi", body="Hello")

        gateway.send_mail.assert_awaited_once_with("token", "bob@example.com", "Hi", "Hello")
        mock_console.print.assert_called()

    def test_invalid_recipient(self) -> None:
        gateway = make_gateway()

        with _patched(make_gate(), gateway), patch("solomail.cli.commands.console"):
            with pytest.raises(typer.BadParameter, match="Invalid email address"):
                commands.send(to="bob", subject="Hi", body="")

        gateway.send_mail.assert_not_awaited()


def test_show_device_code_prints_code() -> None:
    with patch("solomail.cli.commands.console") as mock_console:
        commands._show_device_code("https://microsoft.com/devicelogin", "ABCD-1234", None)

    panel = mock_console.print.call_args.args[0]
    assert "ABCD-1234" in str(panel.renderable)
    assert "https://microsoft.com/devicelogin" in str(panel.renderable)


def test_main_callback_sets_output() -> None:
    commands.main_callback(verbose=True, quiet=False)
    assert commands._OUTPUT.verbose is True
    assert commands._OUTPUT.quiet is False
    commands._configure_output(verbose=False, quiet=False)


def test_configure_output_rejects_both() -> None:
    with pytest.raises(typer.BadParameter):
        commands._configure_output(verbose=True, quiet=True)


def test_setup_logging_respects_output() -> None:
    settings = make_settings()
    root_logger = commands.logging.getLogger()
    previous_level = root_logger.level
    try:
        commands._configure_output(verbose=True, quiet=False)
        commands._setup_logging(settings)
        assert root_logger.level == commands.logging.DEBUG

        commands._configure_output(verbose=False, quiet=True)
        commands._setup_logging(settings)
        assert root_logger.level == commands.logging.ERROR
    finally:
        commands._configure_output(verbose=False, quiet=False)
        root_logger.setLevel(previous_level)


def test_console_print_respects_quiet() -> None:
    commands._configure_output(verbose=False, quiet=True)
    try:
        with patch("solomail.cli.commands.console") as mock_console:
            commands._console_print("message")
            mock_console.print.assert_not_called()
            commands._console_print("error", level="error")
            mock_console.print.assert_called_once()
    finally:
        commands._configure_output(verbose=False, quiet=False)

"""CLI commands for SoloMail."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Any, Awaitable, Callable, Optional

import typer
from rich.console import Console
from rich.panel import Panel

from solomail.auth import AuthCancelled, AuthError, AuthSuccess, IdentityGate, UnauthorizedAccount
from solomail.cli.formatters import build_message_panel, build_message_table, build_status_panel
from solomail.config.settings import Settings, get_settings
from solomail.mail import ApiError, ComposeError, MailGateway, MailSession, NetworkError, Ok, SignInRequired
from solomail.mail.results import describe

app = typer.Typer(help="SoloMail - mail client for one Microsoft account")
console = Console()
logger = logging.getLogger(__name__)


@dataclass
class OutputOptions:
    """Track global output flags for the CLI."""

    verbose: bool = False
    quiet: bool = False


_OUTPUT = OutputOptions()


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", help="Show verbose output")] = False,
    quiet: Annotated[bool, typer.Option("--quiet", help="Suppress non-essential output")] = False,
) -> None:
    """Configure global CLI output."""
    _configure_output(verbose, quiet)


def _configure_output(verbose: bool, quiet: bool) -> None:
    if verbose and quiet:
        raise typer.BadParameter("Choose only one of --verbose or --quiet.")
    _OUTPUT.verbose = verbose
    _OUTPUT.quiet = quiet


def _setup_logging(settings: Settings) -> None:
    settings.setup_logging()
    root_logger = logging.getLogger()
    if _OUTPUT.verbose:
        root_logger.setLevel(logging.DEBUG)
    if _OUTPUT.quiet:
        root_logger.setLevel(logging.ERROR)


def _console_print(*args, level: str = "info") -> None:
    if _OUTPUT.quiet and level not in {"error", "summary"}:
        return
    console.print(*args)


def _render_error(action: str, message: str, exc: Exception) -> None:
    logger.exception("%s failed", action)
    _console_print(
        Panel.fit(
            f"✗ {message}\n\n{str(exc)}",
            title="Error",
            border_style="red",
        ),
        level="error",
    )


def _show_device_code(verification_uri: str, user_code: str, expires_on: Any) -> None:
    """Prompt callback for the device code flow."""
    expiry = ""
    if isinstance(expires_on, datetime):
        expiry = f"\n\nThe code expires at {expires_on.astimezone(timezone.utc):%H:%M} UTC."
    _console_print(
        Panel.fit(
            f"1. Open {verification_uri} in a browser\n"
            f"2. Enter the code [bold]{user_code}[/bold]\n"
            f"3. Sign in with the allowed Microsoft account{expiry}",
            title="Sign In",
            border_style="blue",
        ),
        level="summary",
    )


async def _initialize_gate(settings: Settings) -> IdentityGate:
    gate = IdentityGate.from_settings(settings)
    ok, error = await gate.initialize()
    if not ok:
        _console_print(
            Panel.fit(f"✗ Could not start sign-in\n\n{error}", title="Error", border_style="red"),
            level="error",
        )
        raise typer.Exit(code=1)
    return gate


async def _interactive_sign_in(gate: IdentityGate) -> bool:
    """Run the device code flow and report the outcome.

    Returns:
        True when signed in, False when the user cancelled

    Raises:
        typer.Exit: When sign-in failed or a different account signed in
    """
    outcome = await gate.sign_in_interactive(prompt_callback=_show_device_code)

    if isinstance(outcome, AuthSuccess):
        _console_print(
            Panel.fit(
                f"✓ Signed in as {outcome.account.username}",
                title="Success",
                border_style="green",
            ),
            level="summary",
        )
        return True

    if isinstance(outcome, UnauthorizedAccount):
        _console_print(
            Panel.fit(
                f"✗ Wrong account\n\n{outcome.message}. The other account has been signed out.",
                title="Unauthorized Account",
                border_style="red",
            ),
            level="error",
        )
        raise typer.Exit(code=1)

    if isinstance(outcome, AuthCancelled):
        _console_print("[yellow]Sign-in cancelled[/yellow]")
        return False

    message = outcome.message if isinstance(outcome, AuthError) else str(outcome)
    _console_print(
        Panel.fit(f"✗ Sign-in failed\n\n{message}", title="Error", border_style="red"),
        level="error",
    )
    raise typer.Exit(code=1)


async def _run_with_sign_in(session: MailSession, call: Callable[[], Awaitable[Any]]) -> Any:
    """Run a session call, offering an interactive sign-in once if the session needs it."""
    result = await call()
    if isinstance(result, SignInRequired):
        _console_print(f"[yellow]Sign-in required: {result.message}[/yellow]", level="error")
        if not typer.confirm("Sign in now?", default=True):
            raise typer.Exit(code=1)
        if not await _interactive_sign_in(session.gate):
            raise typer.Exit(code=1)
        result = await call()

    if isinstance(result, SignInRequired):
        _console_print(
            Panel.fit(f"✗ {result.message}", title="Authentication Required", border_style="red"),
            level="error",
        )
        raise typer.Exit(code=1)

    if isinstance(result, (ApiError, NetworkError)):
        _console_print(
            Panel.fit(
                f"✗ {describe(result)}\n\nRun the command again to retry.",
                title="Error",
                border_style="red",
            ),
            level="error",
        )
        raise typer.Exit(code=1)

    return result


def _build_session(settings: Settings, gate: IdentityGate) -> MailSession:
    return MailSession(
        gate,
        MailGateway.from_settings(settings.mail),
        inbox_capacity=settings.mail.max_cached_messages,
    )


@app.command()
def login() -> None:
    """Sign in with the allowed Microsoft account using a device code."""
    asyncio.run(_login_async())


async def _login_async() -> None:
    """Async implementation of login command."""
    try:
        settings = get_settings()
        _setup_logging(settings)
        settings.ensure_directories()

        gate = await _initialize_gate(settings)

        if gate.is_signed_in:
            _console_print(
                Panel.fit(
                    f"✓ Already signed in as {gate.current_username}",
                    title="Authentication Status",
                    border_style="green",
                )
            )
            if not typer.confirm("Do you want to sign in again?", default=False):
                return

            ok, error = await gate.sign_out()
            if not ok:
                raise RuntimeError(error)
            _console_print("[yellow]Signed out previous session[/yellow]\n")

        if not await _interactive_sign_in(gate):
            return

    except typer.Exit:
        raise
    except Exception as e:
        _render_error("Login", "Unexpected error during login", e)
        raise typer.Exit(code=1)


@app.command()
def logout() -> None:
    """Sign out and forget the saved account."""
    asyncio.run(_logout_async())


async def _logout_async() -> None:
    """Async implementation of logout command."""
    try:
        settings = get_settings()
        _setup_logging(settings)
        logger.debug("Starting logout")

        gate = await _initialize_gate(settings)
        if not gate.is_signed_in:
            _console_print(
                Panel.fit(
                    "No active session found. You are not signed in.",
                    title="Logout",
                    border_style="yellow",
                ),
                level="summary",
            )
            return

        ok, error = await gate.sign_out()
        if not ok:
            raise RuntimeError(error)

        _console_print(
            Panel.fit(
                "✓ Successfully signed out\n\nThe saved account has been removed.",
                title="Logout",
                border_style="green",
            ),
            level="summary",
        )

    except typer.Exit:
        raise
    except Exception as e:
        _render_error("Logout", "Error during logout", e)
        raise typer.Exit(code=1)


@app.command()
def status() -> None:
    """Show the signed-in account and mailbox settings."""
    asyncio.run(_status_async())


async def _status_async() -> None:
    """Async implementation of status command."""
    try:
        settings = get_settings()
        _setup_logging(settings)

        gate = await _initialize_gate(settings)
        if gate.is_signed_in:
            auth_value = f"✓ Signed in as {gate.current_username}"
        else:
            auth_value = "✗ Not signed in"

        status_panel = build_status_panel(
            [
                ("Authentication", auth_value),
                ("Allowed account", settings.mail.allowed_account),
                ("Page size", str(settings.mail.page_size)),
                ("Inbox capacity", str(settings.mail.max_cached_messages)),
                ("Account record", settings.storage.auth_record_file),
            ],
            title="Status",
        )
        _console_print(status_panel, level="summary")

    except typer.Exit:
        raise
    except Exception as e:
        _render_error("Status", "Error checking status", e)
        raise typer.Exit(code=1)


@app.command()
def inbox(
    pages: Annotated[int, typer.Option("--pages", "-p", min=1, help="Number of pages to load")] = 1,
    ids: Annotated[bool, typer.Option("--ids", help="Show message IDs")] = False,
) -> None:
    """List the newest inbox messages."""
    asyncio.run(_inbox_async(pages, ids))


async def _inbox_async(pages: int, show_ids: bool) -> None:
    """Async implementation of inbox command."""
    session: Optional[MailSession] = None
    try:
        settings = get_settings()
        _setup_logging(settings)
        settings.ensure_directories()

        gate = await _initialize_gate(settings)
        session = _build_session(settings, gate)

        _console_print("[dim]Loading inbox...[/dim]")
        await _run_with_sign_in(session, session.refresh_inbox)

        async def next_page() -> Any:
            result = await session.load_more()
            return Ok(None) if result is None else result

        for _ in range(pages - 1):
            if not session.inbox.has_more:
                break
            await _run_with_sign_in(session, next_page)

        messages = session.inbox.messages
        if not messages:
            _console_print("[yellow]Your inbox is empty.[/yellow]", level="summary")
            return

        table = build_message_table(messages, title="Inbox", include_id=show_ids)
        _console_print(table)
        more = " (more available)" if session.inbox.has_more else ""
        _console_print(f"[dim]Showing {len(messages)} messages{more}[/dim]", level="summary")

    except typer.Exit:
        raise
    except Exception as e:
        _render_error("Inbox", "Error loading inbox", e)
        raise typer.Exit(code=1)
    finally:
        if session is not None:
            await session.gateway.close()


@app.command()
def read(
    message_id: Annotated[str, typer.Argument(help="ID of the message to show (see 'inbox --ids')")],
) -> None:
    """Show one message with its full body."""
    asyncio.run(_read_async(message_id))


async def _read_async(message_id: str) -> None:
    """Async implementation of read command."""
    session: Optional[MailSession] = None
    try:
        settings = get_settings()
        _setup_logging(settings)
        settings.ensure_directories()

        gate = await _initialize_gate(settings)
        session = _build_session(settings, gate)

        result = await _run_with_sign_in(session, lambda: session.open_message(message_id))
        _console_print(build_message_panel(result.value), level="summary")

    except typer.Exit:
        raise
    except Exception as e:
        _render_error("Read", "Error loading message", e)
        raise typer.Exit(code=1)
    finally:
        if session is not None:
            await session.gateway.close()


@app.command()
def send(
    to: Annotated[str, typer.Option("--to", "-t", help="Recipient email address")],
    subject: Annotated[str, typer.Option("--subject", "-s", help="Message subject")],
    body: Annotated[str, typer.Option("--body", "-b", help="Plain-text message body")] = "",
) -> None:
    """Send a plain-text message to one recipient."""
    asyncio.run(_send_async(to, subject, body))


async def _send_async(to: str, subject: str, body: str) -> None:
    """Async implementation of send command."""
    session: Optional[MailSession] = None
    try:
        settings = get_settings()
        _setup_logging(settings)
        settings.ensure_directories()

        gate = await _initialize_gate(settings)
        session = _build_session(settings, gate)

        await _run_with_sign_in(session, lambda: session.send(to, subject, body))
        _console_print(
            Panel.fit(f"✓ Message sent to {to.strip()}", title="Sent", border_style="green"),
            level="summary",
        )

    except ComposeError as e:
        raise typer.BadParameter(str(e)) from e
    except typer.Exit:
        raise
    except Exception as e:
        _render_error("Send", "Error sending message", e)
        raise typer.Exit(code=1)
    finally:
        if session is not None:
            await session.gateway.close()


def main() -> None:
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()

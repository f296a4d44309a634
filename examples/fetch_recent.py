"""Fetch and display the newest inbox messages without the CLI."""

import asyncio

from solomail.auth import IdentityGate
from solomail.config.settings import get_settings
from solomail.mail import MailGateway, MailSession, Ok, SignInRequired
from solomail.mail.results import describe


async def main() -> None:
    """Restore the saved session and list the first inbox page."""
    settings = get_settings()
    settings.setup_logging()
    settings.ensure_directories()

    gate = IdentityGate.from_settings(settings)
    ok, error = await gate.initialize()
    if not ok:
        print(error)
        return

    session = MailSession(gate, MailGateway.from_settings(settings.mail))
    try:
        result = await session.refresh_inbox()
        if isinstance(result, SignInRequired):
            print(f"{result.message} Run 'solomail login' first.")
            return
        if not isinstance(result, Ok):
            print(describe(result))
            return

        for message in session.inbox.messages:
            received = message.received_at.strftime("%Y-%m-%d %H:%M") if message.received_at else "unknown"
            print(f"{received} | {message.sender.display_name} | {message.display_subject}")
    finally:
        await session.gateway.close()


if __name__ == "__main__":
    asyncio.run(main())

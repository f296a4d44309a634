"""Main entry point for SoloMail."""

from solomail.cli import main as cli_main


def main() -> None:
    """Main entry point."""
    cli_main()


if __name__ == "__main__":
    main()

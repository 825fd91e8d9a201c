"""Entry point for `python3 -m regraft`."""

from regraft.cli.app import app


def main() -> None:
    """CLI entry point for the `regraft` script."""
    app()


if __name__ == "__main__":
    main()

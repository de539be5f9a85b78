"""Entry point for ``python -m macrolink``."""

from macrolink.cli import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()

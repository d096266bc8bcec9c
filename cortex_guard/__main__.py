"""Entry point for `python -m cortex_guard`."""

from cortex_guard.cli import cli


def main() -> None:
    cli()


if __name__ == "__main__":
    main()

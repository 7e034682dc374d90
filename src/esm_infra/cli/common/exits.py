"""Exit handling utilities for the CLI."""

from typing import NoReturn

import typer

from esm_infra.cli.common.output import out


def die(msg: str, code: int = 1) -> NoReturn:
    """Exit with an error message and optional exit code."""
    out.error(msg)
    raise typer.Exit(code)


def exit_from_exc(exc: Exception, *, message: str, code: int = 1) -> NoReturn:
    """
    Print an error message and exit, chaining the original exception.

    Keeps the cause attached for debugging while standardizing error exits.
    """
    out.error(message)
    raise typer.Exit(code) from exc

"""Output formatting utilities for the CLI."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.theme import Theme

from esm_infra.core.schema import AccessLevel, StackSpec

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "title": "bold cyan",
        "meta": "dim",
    }
)

console = Console(theme=_THEME)


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich (debug level when verbose)."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _key_label(key: Any) -> str:
    """Render `name (S)` for a key attribute, or an empty string."""
    if key is None:
        return ""
    return f"{key.name} ({key.type.value})"


@dataclass(frozen=True)
class Out:
    """Output formatter for CLI messages and tables."""

    @contextmanager
    def status(self, msg: str):
        """Show a transient status spinner while work is in progress."""
        with console.status(msg, spinner="dots"):
            yield

    def success(self, msg: str) -> None:
        """Print a success message."""
        console.print(f"[ok]✓[/] {msg}")

    def error(self, msg: str) -> None:
        """Print an error message."""
        console.print(f"[err]✗[/] {msg}")

    def header(self, title: str) -> None:
        """Print a header message."""
        console.print(f"[title]{title}[/]")

    def kv(self, items: Mapping[str, Any]) -> None:
        """Print key-value pairs."""
        for k, v in items.items():
            console.print(f"[meta]{k}[/]: {v}")

    def tables_table(self, spec: StackSpec, title: str = "Tables") -> None:
        """Render the declared tables with their key schema and indexes."""
        t = Table(title=title, show_lines=False)
        t.add_column("Table", style="ok", no_wrap=True)
        t.add_column("Partition key")
        t.add_column("Sort key")
        t.add_column("Indexes", style="meta")
        t.add_column("Removal", style="meta")

        for table in spec.tables:
            indexes = ", ".join(
                f"{i.name} [{_key_label(i.partition_key)} / {_key_label(i.sort_key)}]"
                for i in table.indexes
            )
            t.add_row(
                table.name,
                _key_label(table.partition_key),
                _key_label(table.sort_key),
                indexes,
                table.removal_policy.value,
            )

        console.print(t)

    def roles_table(self, spec: StackSpec, title: str = "Roles") -> None:
        """
        Render the GitHub Actions roles.

        Shows the repository and branch filter each role trusts.
        """
        t = Table(title=title, show_lines=False)
        t.add_column("Role", style="ok", no_wrap=True)
        t.add_column("Repository")
        t.add_column("Filter", style="meta")

        for r in spec.roles:
            t.add_row(r.logical_id, r.repository, r.filter)

        console.print(t)

    def grants_table(self, spec: StackSpec, title: str = "Grants") -> None:
        """Render the (principal, table, access) edges."""
        t = Table(title=title, show_lines=False)
        t.add_column("Principal", style="ok", no_wrap=True)
        t.add_column("Table")
        t.add_column("Access")

        for g in spec.grants:
            style = "warn" if g.access == AccessLevel.READ_WRITE else "meta"
            t.add_row(g.principal, g.table, f"[{style}]{g.access.value}[/{style}]")

        console.print(t)

    def outputs_table(self, spec: StackSpec, title: str = "Outputs") -> None:
        """Render the stack outputs and the entity each one exposes."""
        t = Table(title=title, show_lines=False)
        t.add_column("Output", style="ok", no_wrap=True)
        t.add_column("Source", style="meta")
        t.add_column("Target")

        for o in spec.outputs:
            t.add_row(o.logical_id, o.source.value, o.target)

        console.print(t)

    def resource_counts_table(
        self, counts: Iterable[tuple[str, int]], title: str = "Resources"
    ) -> None:
        """Render `(type, count)` pairs from a synthesized template."""
        t = Table(title=title, show_lines=False)
        t.add_column("Type", style="ok")
        t.add_column("Count", justify="right")

        for rtype, count in counts:
            t.add_row(rtype, str(count))

        console.print(t)


out = Out()

"""
credential-audit CLI entrypoint.

Usage:
    credential-audit [OPTIONS]
    python -m credential_audit [OPTIONS]
"""

from __future__ import annotations

import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import NoReturn

import click
import requests
from rich.console import Console
from rich.errors import ConsoleError, MarkupError, StyleError
from rich.markup import escape
from rich.panel import Panel

from . import __version__
from .analyzer import analyze_all
from .auth import AuthenticationError, get_token
from .collector import collect
from .graph import GraphClient
from .reporter import generate_exports, print_console_report

console = Console()

BANNER = f"""[bold cyan]credential-audit[/bold cyan] [dim]v{__version__}[/dim]
[dim]Entra ID application secret & certificate expiry audit · read-only[/dim]
"""


def _fail(title: str, message: str) -> NoReturn:
    console.print(Panel(f"[red]{escape(message)}[/red]", title=f"[red]{title}[/red]", border_style="red"))
    sys.exit(1)


@click.command()
@click.option(
    "--tenant", "-t",
    default=None,
    metavar="TENANT_ID",
    help="Entra tenant ID or domain (e.g. contoso.onmicrosoft.com). Reads from config file if omitted.",
)
@click.option(
    "--export-path", "-o",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    metavar="BASE_PATH",
    help="Base path (no extension) for the .csv and .html exports. Console output only if omitted.",
)
@click.option(
    "--client-id", "-c",
    default=None,
    metavar="CLIENT_ID",
    help="Public client app registration used for sign-in. Reads from config file if omitted.",
)
@click.option(
    "--config",
    default=None,
    type=click.Path(exists=False, path_type=Path),
    metavar="PATH",
    help="Path to credential_audit_config.json (default: ./credential_audit_config.json).",
)
@click.option(
    "--quiet",
    is_flag=True,
    default=False,
    help="Suppress the banner.",
)
@click.version_option(__version__, "--version", "-V")
def main(
    tenant: str | None,
    export_path: Path | None,
    client_id: str | None,
    config: Path | None,
    quiet: bool,
) -> None:
    """
    credential-audit — Entra ID application credential expiry audit.

    Signs in via device code flow with Application.Read.All, reads every
    app registration and service principal, and reports client secrets and
    certificates that are expired or close to expiry.

    Exit codes:
      0  Audit completed (export warnings do not change this)
      1  Sign-in or data retrieval failed
    """
    _scan_start = time.monotonic()

    if not quiet:
        console.print(BANNER)

    # ── Authenticate ──────────────────────────────────────────────────────────
    try:
        token, auth_config = get_token(tenant, client_id, config)
    except AuthenticationError as exc:
        _fail("Authentication Failed", str(exc))
    tenant_id = auth_config.get("tenant_id", "")
    console.print(f"[green]Connected to:[/green] {tenant_id}")

    # ── Collect data ──────────────────────────────────────────────────────────
    with GraphClient(access_token=token) as client:
        try:
            raw_data = collect(client, tenant_id=tenant_id)
        except (PermissionError, RuntimeError, requests.RequestException) as exc:
            _fail("Data Retrieval Failed", str(exc))

    # ── Classify ──────────────────────────────────────────────────────────────
    result = analyze_all(raw_data, now=datetime.now(timezone.utc))

    # ── Report ────────────────────────────────────────────────────────────────
    # The console pass fails independently of the exports
    try:
        print_console_report(result, console)
    except (OSError, UnicodeError, ConsoleError, MarkupError, StyleError) as exc:
        click.echo(f"Warning: console report failed: {exc}", err=True)

    if export_path is not None:
        console.print("\n[cyan]Writing exports...[/cyan]")
        generate_exports(result, export_path)

    elapsed = time.monotonic() - _scan_start
    console.print(f"\n[dim]Completed in {elapsed:.1f}s[/dim]")


if __name__ == "__main__":
    main()

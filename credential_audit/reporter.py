"""
Report generation for credential-audit.

Produces:
  - Console summary (rich)
  - CSV export (one row per credential)
  - Self-contained HTML report (inline CSS, works offline)

All three render the same record_row() projection.
"""

from __future__ import annotations

import csv
from datetime import datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .analyzer import AuditResult, CredentialRecord, ExpiryStatus

console = Console()

TEMPLATES_DIR = Path(__file__).parent / "templates"

COLUMNS = [
    "ApplicationName",
    "ApplicationId",
    "ObjectId",
    "CredentialType",
    "CredentialId",
    "DisplayName",
    "StartDate",
    "ExpiryDate",
    "DaysUntilExpiry",
    "Status",
]

STATUS_ORDER = (ExpiryStatus.EXPIRED, ExpiryStatus.CRITICAL, ExpiryStatus.WARNING, ExpiryStatus.OK)

STATUS_STYLES = {
    ExpiryStatus.EXPIRED: "bold red",
    ExpiryStatus.CRITICAL: "red",
    ExpiryStatus.WARNING: "yellow",
    ExpiryStatus.OK: "green",
}


# ── Shared projection ──────────────────────────────────────────────────────────


def _format_date(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d")


def record_row(record: CredentialRecord) -> dict[str, str | int]:
    """Flatten a record into the fixed export column order."""
    return {
        "ApplicationName": record.application_name,
        "ApplicationId": record.application_id,
        "ObjectId": record.object_id,
        "CredentialType": record.credential_type.value,
        "CredentialId": record.credential_id,
        "DisplayName": record.display_name,
        "StartDate": _format_date(record.start_date),
        "ExpiryDate": _format_date(record.expiry_date),
        "DaysUntilExpiry": record.days_until_expiry,
        "Status": record.status.value,
    }


def _generated_label(result: AuditResult) -> str:
    return result.generated_at.astimezone().strftime("%Y-%m-%d %H:%M %Z")


# ── Console report ─────────────────────────────────────────────────────────────


def print_console_report(result: AuditResult, out: Console | None = None) -> None:
    """Run metadata, status counts, urgent detail, then every record as a table."""
    out = out or console

    out.print(
        Panel(
            "\n".join(
                [
                    f"[bold]Generated:[/bold] {_generated_label(result)}",
                    f"[bold]Tenant:[/bold]    {escape(result.tenant_id) or '—'}",
                    f"[bold]Total:[/bold]     {result.total} credential(s)",
                    "",
                    "  ".join(
                        f"[{STATUS_STYLES[s]}]{s.value}: {result.counts[s]}[/{STATUS_STYLES[s]}]"
                        for s in STATUS_ORDER
                    ),
                ]
            ),
            title="[bold cyan]Credential Expiry Summary[/bold cyan]",
            border_style="cyan",
        )
    )

    if result.urgent:
        out.print(f"\n[bold]Expired or expiring within 60 days ({len(result.urgent)}):[/bold]")
        for record in result.urgent:
            row = record_row(record)
            style = STATUS_STYLES[record.status]
            out.print(f"\n  [{style}]{row['Status']}[/{style}] {escape(row['ApplicationName'])}", highlight=False)
            for column in COLUMNS:
                if column in ("ApplicationName", "Status"):
                    continue
                out.print(f"    [dim]{column}:[/dim] {escape(str(row[column]))}", highlight=False)
    else:
        out.print("\n[green]No credentials expired or expiring within 60 days.[/green]")

    table = Table(title=f"All credentials — {result.total}", show_header=True, header_style="bold")
    for column in ("ApplicationName", "CredentialType", "DisplayName", "ExpiryDate", "DaysUntilExpiry", "Status"):
        table.add_column(column, justify="right" if column == "DaysUntilExpiry" else "left")
    for record in result.records:
        row = record_row(record)
        table.add_row(
            escape(row["ApplicationName"]),
            row["CredentialType"],
            escape(row["DisplayName"]),
            row["ExpiryDate"],
            str(row["DaysUntilExpiry"]),
            row["Status"],
            style=STATUS_STYLES[record.status],
        )
    out.print()
    out.print(table)


# ── CSV export ─────────────────────────────────────────────────────────────────


def generate_csv(result: AuditResult, output_path: Path) -> Path:
    """Write a flat CSV with one row per credential."""
    with output_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=COLUMNS)
        writer.writeheader()
        for record in result.records:
            writer.writerow(record_row(record))
    return output_path


# ── HTML report ────────────────────────────────────────────────────────────────


def _build_jinja_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        # Include "html.j2" and "j2" so templates named *.html.j2 are also escaped
        autoescape=select_autoescape(["html", "html.j2", "j2"]),
    )


def generate_html(result: AuditResult, output_path: Path) -> Path:
    """Render the HTML report and write to output_path."""
    template = _build_jinja_env().get_template("report.html.j2")

    html_content = template.render(
        generated_at=_generated_label(result),
        tenant_id=result.tenant_id or "—",
        version=__version__,
        total=result.total,
        tiles=[
            {"status": s.value, "css": s.value.lower(), "count": result.counts[s]}
            for s in STATUS_ORDER
        ],
        urgent_rows=[record_row(r) for r in result.urgent],
        all_rows=[record_row(r) for r in result.records],
    )

    output_path.write_text(html_content, encoding="utf-8")
    return output_path


# ── Orchestrator ───────────────────────────────────────────────────────────────


def generate_exports(result: AuditResult, base_path: Path) -> dict[str, Path | None]:
    """
    Write <base>.csv and <base>.html. Returns dict of format → output path.

    A failing export is reported as a warning and does not stop the other.
    """
    outputs: dict[str, Path | None] = {"csv": None, "html": None}

    csv_path = base_path.with_name(base_path.name + ".csv")
    try:
        outputs["csv"] = generate_csv(result, csv_path)
        console.print(f"[green]CSV: [/green] {csv_path}")
    except OSError as exc:
        console.print(f"[yellow]Warning: CSV export to {csv_path} failed: {exc}[/yellow]")

    html_path = base_path.with_name(base_path.name + ".html")
    try:
        outputs["html"] = generate_html(result, html_path)
        console.print(f"[green]HTML:[/green] {html_path}")
    except (OSError, TemplateError) as exc:
        console.print(f"[yellow]Warning: HTML export to {html_path} failed: {exc}[/yellow]")

    return outputs

"""
MSAL device code flow authentication for credential-audit.

Reads client_id and tenant_id from credential_audit_config.json or accepts
them as explicit arguments. The access token is held only in memory and
never written to disk.
"""

import json
from pathlib import Path

import msal
import requests
from rich.console import Console
from rich.panel import Panel

console = Console()

# Read-only: the audit never writes to the directory.
GRAPH_SCOPES = [
    "https://graph.microsoft.com/Application.Read.All",
]

DEFAULT_CONFIG_FILE = Path.cwd() / "credential_audit_config.json"


class AuthenticationError(RuntimeError):
    """Sign-in could not be completed or configuration is unusable."""


def load_config(config_path: Path | None = None) -> dict:
    """Load client_id and tenant_id from a JSON config file."""
    path = config_path or DEFAULT_CONFIG_FILE
    if not path.exists():
        raise AuthenticationError(
            f"Config file not found: {path}. "
            "Pass --client-id (and optionally --tenant) or create the config file."
        )
    try:
        config = json.loads(path.read_text(encoding="utf-8-sig"))
    except (json.JSONDecodeError, OSError) as exc:
        raise AuthenticationError(f"Error reading config file {path}: {exc}") from exc
    if not isinstance(config, dict):
        raise AuthenticationError(f"Config file {path} must contain a JSON object.")
    return config


def acquire_token(tenant_id: str, client_id: str) -> dict:
    """
    Run MSAL device code flow and return the MSAL token result.

    Prompts the user to visit https://microsoft.com/devicelogin and enter a code.
    """
    authority = f"https://login.microsoftonline.com/{tenant_id}"
    try:
        # MSAL resolves the authority eagerly; an unknown tenant raises ValueError here
        app = msal.PublicClientApplication(client_id=client_id, authority=authority)
        flow = app.initiate_device_flow(scopes=GRAPH_SCOPES)
    except (ValueError, requests.RequestException) as exc:
        raise AuthenticationError(f"Sign-in failed: {exc}") from exc

    if "user_code" not in flow:
        raise AuthenticationError(
            f"Failed to create device flow: {flow.get('error_description', 'unknown error')}"
        )

    console.print(
        Panel(
            f"[bold yellow]Open your browser and go to:[/bold yellow]\n\n"
            f"  [cyan underline]{flow.get('verification_uri', 'https://microsoft.com/devicelogin')}[/cyan underline]\n\n"
            f"[bold yellow]Enter the code:[/bold yellow]\n\n"
            f"  [bold white on blue]  {flow['user_code']}  [/bold white on blue]\n\n"
            f"[dim]Waiting for authentication... (expires in {flow.get('expires_in', 900) // 60} minutes)[/dim]",
            title="[bold cyan]Microsoft Authentication Required[/bold cyan]",
            border_style="cyan",
        )
    )

    try:
        result = app.acquire_token_by_device_flow(flow)
    except (ValueError, requests.RequestException) as exc:
        raise AuthenticationError(f"Sign-in failed: {exc}") from exc

    if "access_token" not in result:
        error = result.get("error_description") or result.get("error") or "Unknown error"
        raise AuthenticationError(f"Authentication failed: {error}")

    console.print("[green]Authentication successful.[/green]")
    return result


def get_token(tenant_id: str | None, client_id: str | None, config_path: Path | None = None) -> tuple[str, dict]:
    """
    Resolve configuration and return (access_token, config_dict).

    Flags win over the config file. Without any tenant the "organizations"
    authority is used and the tenant is chosen at sign-in.
    """
    if client_id:
        config = {"client_id": client_id, "tenant_id": tenant_id or "organizations"}
    else:
        config = load_config(config_path)
        if tenant_id:
            config["tenant_id"] = tenant_id
        config.setdefault("tenant_id", "organizations")

    if not config.get("client_id"):
        raise AuthenticationError("No client_id configured. Pass --client-id or set it in the config file.")

    result = acquire_token(config["tenant_id"], config["client_id"])
    # The signed-in directory, which matters when the authority was "organizations"
    if tid := (result.get("id_token_claims") or {}).get("tid"):
        config["tenant_id"] = tid
    return result["access_token"], config

"""
Data collection orchestration for credential-audit.

Fetches application registrations and service principals from Microsoft
Graph. Either collection failing aborts the run, so classification never
sees a partial dataset.
"""

from rich.console import Console

from .graph import GraphClient

console = Console()


def link_applications(service_principals: list[dict], applications: list[dict]) -> dict[str, dict | None]:
    """Map each service principal object id to its application registration (joined on appId)."""
    apps_by_app_id = {app["appId"]: app for app in applications if app.get("appId")}
    return {
        sp.get("id", ""): apps_by_app_id.get(sp.get("appId", ""))
        for sp in service_principals
    }


def collect(client: GraphClient, tenant_id: str = "") -> dict:
    """
    Collect everything the audit needs.

    Returns a dict with keys:
        tenant_id          – directory the run was authenticated against
        applications       – list of application dicts
        service_principals – list of SP dicts, each with _linkedApplicationId

    PermissionError / RuntimeError from the client propagate unchanged.
    """
    with console.status("[cyan]Fetching application registrations..."):
        applications = list(client.get_applications())
    console.print(f"[green]App registrations found:[/green] {len(applications):,}")

    with console.status("[cyan]Fetching service principals..."):
        service_principals = list(client.get_service_principals())
    console.print(f"[green]Service principals found:[/green] {len(service_principals):,}")

    links = link_applications(service_principals, applications)
    enriched = []
    for sp in service_principals:
        linked = links.get(sp.get("id", ""))
        enriched.append({**sp, "_linkedApplicationId": linked.get("id") if linked else None})

    return {
        "tenant_id": tenant_id,
        "applications": applications,
        "service_principals": enriched,
    }

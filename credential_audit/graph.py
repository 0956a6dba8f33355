"""
Microsoft Graph API client with automatic pagination.

All methods are read-only GET requests. Failures are not retried: a failed
request raises and the caller decides whether the run can continue.
"""

from typing import Generator

import requests

GRAPH_BASE = "https://graph.microsoft.com/v1.0"
PAGE_SIZE = 999
REQUEST_TIMEOUT = 30  # seconds


class GraphClient:
    """
    Thin read-only wrapper around the Microsoft Graph REST API.

    Holds the authenticated HTTP session for the run. Use it as a context
    manager so the session is released on every exit path.
    """

    def __init__(self, access_token: str, session: requests.Session | None = None) -> None:
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            }
        )

    def __enter__(self) -> "GraphClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._session.close()

    def _get(self, url: str, params: dict | None = None) -> dict:
        """Single GET request. Raises on any non-200 response."""
        resp = self._session.get(url, params=params, timeout=REQUEST_TIMEOUT)

        if resp.status_code == 200:
            return resp.json()

        try:
            msg = resp.json().get("error", {}).get("message", resp.text)
        except ValueError:
            msg = resp.text

        if resp.status_code in (401, 403):
            raise PermissionError(f"Graph API access denied ({resp.status_code}): {msg}")
        raise RuntimeError(f"Graph API error {resp.status_code}: {msg}")

    def get_paged(self, path: str, params: dict | None = None) -> Generator[dict, None, None]:
        """
        Yield individual items from a paged Graph API collection.

        Automatically follows @odata.nextLink until all pages are consumed.
        """
        url = f"{GRAPH_BASE}{path}"
        query: dict | None = {**(params or {}), "$top": PAGE_SIZE}

        while url:
            data = self._get(url, params=query)
            # On nextLink pages, params are already encoded in the URL
            query = None
            yield from data.get("value", [])
            url = data.get("@odata.nextLink")

    # ── Convenience methods ──────────────────────────────────────────────────

    def get_applications(self) -> Generator[dict, None, None]:
        """Yield all application registrations with their embedded credentials."""
        yield from self.get_paged(
            "/applications",
            params={"$select": "id,appId,displayName,passwordCredentials,keyCredentials"},
        )

    def get_service_principals(self) -> Generator[dict, None, None]:
        """Yield all service principals with their key credentials (SAML signing material)."""
        yield from self.get_paged(
            "/servicePrincipals",
            params={"$select": "id,appId,displayName,keyCredentials"},
        )

"""
connectors/content_api.py — Content API connector
===================================================

Async client for the portfolio content API (the remote store behind the
optimistic store). Only the request/response contract lives here; the
server itself is a separate service.

Endpoints (relative to ``{base_url}{prefix}``)
----------------------------------------------
  GET    /about | /projects | /certificates | /skills | /configuration
  POST   /{resource}                       → create, returns the stored record
  PUT    /{resource}/{id}                  → update, returns the stored record
  DELETE /{resource}/{id}                  → delete
  PATCH  /{resource}/{id}/visibility       → { "visible": bool }
  PUT    /about | /configuration           → replace singleton
  POST   /configuration/reset              → restore default configuration
  DELETE /skills/bulk                      → { "skillIds": [...] }
  POST   /skills/override                  → { skillName, source, sourceId, action }
  DELETE /skills/override                  → { skillName, source, sourceId }
  GET    /projects/screenshots/{id}        → stored captures, newest first
  GET    /projects/screenshot?url=&projectId=   (embedded as image source)

Every transport or HTTP failure is raised as ContentAPIError so callers only
handle one exception type.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

logger = logging.getLogger(__name__)

SINGLETONS = ("about", "configuration")
COLLECTIONS = ("projects", "certificates", "skills")
FETCH_ORDER = ("about", "projects", "certificates", "skills", "configuration")

GITHUB_API = "https://api.github.com"


class ContentAPIError(Exception):
    """A content API call failed (HTTP error status, timeout or transport error)."""

    def __init__(self, message: str, status_code: Optional[int] = None, timed_out: bool = False):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.timed_out = timed_out


def screenshot_url(base_url: str, live_url: str, entity_id: str, prefix: str = "/api") -> str:
    """Capture URL for a live site; the capture happens when the image is fetched."""
    query = urlencode({"url": live_url, "projectId": entity_id})
    return f"{base_url.rstrip('/')}{prefix}/projects/screenshot?{query}"


class ContentAPI:
    """
    Thin httpx wrapper over the content API.

    Args:
        base_url: API origin, e.g. ``http://localhost:5000``
        token:    Bearer token attached to every request when set
        prefix:   Path prefix the API is mounted under
        timeout:  Per-request timeout in seconds
        client:   Pre-built ``httpx.AsyncClient`` (tests pass one with a MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        prefix: str = "/api",
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.prefix = prefix
        self.token = token
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_config(cls, config: dict) -> "ContentAPI":
        api_cfg = config.get("api", {})
        return cls(
            base_url=api_cfg.get("base_url", "http://localhost:5000"),
            token=api_cfg.get("token"),
            prefix=api_cfg.get("prefix", "/api"),
            timeout=float(api_cfg.get("timeout_seconds", 15)),
        )

    async def __aenter__(self) -> "ContentAPI":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- transport ---

    def _url(self, path: str) -> str:
        return f"{self.base_url}{self.prefix}{path}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        target = self._url(path)
        try:
            resp = await self._client.request(method, target, json=json, headers=self._headers())
        except httpx.TimeoutException as e:
            logger.error(f"{method} {target} timed out: {e}")
            raise ContentAPIError("Request timed out. Please try again.", timed_out=True) from e
        except httpx.HTTPError as e:
            logger.error(f"{method} {target} failed: {e}")
            raise ContentAPIError(f"Could not reach content API: {e}") from e

        if resp.status_code >= 400:
            raise ContentAPIError(self._error_message(resp), status_code=resp.status_code)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return None

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        if resp.status_code == 401:
            return "Authentication expired. Please login again."
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return f"Content API returned {resp.status_code}"

    # --- reads ---

    async def fetch_all(self) -> Dict[str, Any]:
        """Fetch every resource concurrently; any failure fails the whole fetch."""
        results = await asyncio.gather(*(self._request("GET", f"/{name}") for name in FETCH_ORDER))
        return dict(zip(FETCH_ORDER, results))

    async def fetch(self, resource: str) -> Any:
        return await self._request("GET", f"/{resource}")

    async def fetch_repositories(self, username: str) -> List[dict]:
        """Public repositories of a GitHub user, first page of 100."""
        url = f"{GITHUB_API}/users/{username}/repos?per_page=100&sort=updated"
        try:
            resp = await self._client.get(url, headers={"Accept": "application/vnd.github.v3+json"})
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch repositories for {username}: {e}")
            raise ContentAPIError(f"Could not fetch repositories: {e}") from e
        return resp.json()

    async def list_screenshots(self, entity_id: str) -> List[dict]:
        return await self._request("GET", f"/projects/screenshots/{entity_id}") or []

    def screenshot_url(self, live_url: str, entity_id: str) -> str:
        return screenshot_url(self.base_url, live_url, entity_id, prefix=self.prefix)

    # --- writes ---

    async def create(self, resource: str, data: dict) -> dict:
        return await self._request("POST", f"/{resource}", json=data)

    async def update(self, resource: str, item_id: str, data: dict) -> dict:
        return await self._request("PUT", f"/{resource}/{item_id}", json=data)

    async def delete(self, resource: str, item_id: str) -> None:
        await self._request("DELETE", f"/{resource}/{item_id}")

    async def set_visibility(self, resource: str, item_id: str, visible: bool) -> dict:
        return await self._request("PATCH", f"/{resource}/{item_id}/visibility", json={"visible": visible})

    async def replace_singleton(self, name: str, data: dict) -> dict:
        return await self._request("PUT", f"/{name}", json=data)

    async def reset_configuration(self) -> dict:
        return await self._request("POST", "/configuration/reset")

    async def bulk_delete(self, resource: str, item_ids: List[str]) -> None:
        await self._request("DELETE", f"/{resource}/bulk", json={"skillIds": list(item_ids)})

    async def set_skill_override(self, skill_name: str, source: str, source_id: str, action: str) -> dict:
        payload = {"skillName": skill_name, "source": source, "sourceId": source_id, "action": action}
        return await self._request("POST", "/skills/override", json=payload)

    async def clear_skill_override(self, skill_name: str, source: str, source_id: str) -> None:
        payload = {"skillName": skill_name, "source": source, "sourceId": source_id}
        await self._request("DELETE", "/skills/override", json=payload)

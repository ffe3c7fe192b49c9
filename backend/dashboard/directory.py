"""
Identity-provider user directory (Clerk-compatible Backend API).

Users are not stored by the dashboard. This adapter wraps the few REST
calls the users screen needs and returns the provider's raw user
objects; `services.project_user` strips them down before rendering.

Security:
    - Uses the provider secret key from settings as a bearer token.
    - Do not log the key or full user payloads.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from .config import settings
from .errors import NotFoundError, StoreError

logger = logging.getLogger("dashboard.directory")


class UserDirectory:
    """Interface of the user directory collaborator."""

    def get_count(self) -> int:
        raise NotImplementedError

    def get_user_list(self, *, limit: int, offset: int) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def update_public_metadata(self, user_id: str, metadata: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def delete_user(self, user_id: str) -> None:
        raise NotImplementedError


class ClerkDirectory(UserDirectory):
    """HTTP implementation backed by `requests`."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        secret_key: Optional[str] = None,
        timeout: Optional[float] = None,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or settings.IDP_API_URL).rstrip("/")
        self.secret_key = secret_key if secret_key is not None else settings.IDP_SECRET_KEY
        self.timeout = timeout or settings.IDP_TIMEOUT_SECONDS
        self.http = http or requests.Session()

    def hdr(self) -> Dict[str, str]:
        if not self.secret_key:
            raise StoreError("identity provider secret key is not configured")
        return {"Authorization": f"Bearer {self.secret_key}", "Content-Type": "application/json"}

    def _call(self, method: str, path: str, *, params: Optional[dict] = None, json: Optional[dict] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = self.http.request(method, url, headers=self.hdr(), params=params, json=json, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("directory request failed method=%s path=%s error=%s", method, path, type(exc).__name__)
            raise StoreError("identity provider unavailable") from exc
        if r.status_code == 404:
            raise NotFoundError("User not found")
        if r.status_code >= 400:
            logger.warning("directory request rejected method=%s path=%s status=%s", method, path, r.status_code)
            raise StoreError(f"identity provider error ({r.status_code})")
        if r.status_code == 204 or not r.content:
            return None
        return r.json()

    def get_count(self) -> int:
        data = self._call("GET", "/users/count") or {}
        return int(data.get("total_count", 0))

    def get_user_list(self, *, limit: int, offset: int) -> List[Dict[str, Any]]:
        data = self._call("GET", "/users", params={"limit": limit, "offset": offset, "order_by": "-created_at"})
        # list endpoint answers with a bare array; newer versions wrap it in {"data": [...]}
        if isinstance(data, dict):
            data = data.get("data") or []
        return list(data or [])

    def update_public_metadata(self, user_id: str, metadata: Dict[str, Any]) -> Dict[str, Any]:
        return self._call("PATCH", f"/users/{user_id}/metadata", json={"public_metadata": metadata}) or {}

    def delete_user(self, user_id: str) -> None:
        self._call("DELETE", f"/users/{user_id}")

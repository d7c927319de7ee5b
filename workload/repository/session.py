"""Explicit session context for calls to the system of record."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SessionContext:
    """Everything a backend call needs to know about who is calling.

    Passed to the backend client instead of being read from process-wide
    storage, so several sessions can coexist in one process.
    """

    base_url: str
    access_token: Optional[str] = None
    acting_user: Optional[str] = None

    def auth_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def url_for(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

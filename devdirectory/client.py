"""Client-side access to the directory: filter state, HTTP source and offline source.

Two interchangeable sources implement :class:`DirectorySource`. Callers pick
one explicitly; the offline source is never used as a hidden fallback when the
HTTP source fails.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol

import httpx

from .errors import DirectoryError, NotFound, error_from_code
from .models import Developer
from .query import DEFAULT_PAGE_SIZE, DeveloperPage, DeveloperQuery, SortKey, run_query
from .store import SEED_DEVELOPERS, validate_developer_fields

logger = logging.getLogger("devdirectory.client")

_FIELD_NAMES = {
    "name": "name",
    "role": "role",
    "techStack": "tech_stack",
    "experience": "experience",
    "about": "about",
    "joiningDate": "joining_date",
}


@dataclass(frozen=True)
class DirectoryFilters:
    """Filter state as held by the browsing UI; empty strings mean "no filter"."""

    search: str = ""
    role: str = ""
    tech: str = ""
    sort: str = SortKey.NEWEST.value
    page: int = 1

    @property
    def has_active_filters(self) -> bool:
        return bool(self.search or self.role or self.tech)

    def to_params(self, page_size: int = DEFAULT_PAGE_SIZE) -> Dict[str, str]:
        params: Dict[str, str] = {}
        for key in ("role", "tech", "search"):
            value = getattr(self, key).strip()
            if value:
                params[key] = value
        if self.sort:
            params["sort"] = self.sort
        params["page"] = str(self.page)
        params["pageSize"] = str(page_size)
        return params

    def to_query(self, page_size: int = DEFAULT_PAGE_SIZE) -> DeveloperQuery:
        return DeveloperQuery.from_params(
            role=self.role,
            tech=self.tech,
            search=self.search,
            sort=self.sort,
            page=self.page,
            page_size=page_size,
        )

    def with_changes(self, **changes: Any) -> "DirectoryFilters":
        """Return updated filters; changing any filter resets to the first page."""

        if "page" not in changes and any(key in changes for key in ("search", "role", "tech", "sort")):
            changes["page"] = 1
        return dataclasses.replace(self, **changes)

    def with_page(self, page: int, total_pages: int) -> "DirectoryFilters":
        return dataclasses.replace(self, page=max(1, min(page, max(total_pages, 1))))

    def cleared(self) -> "DirectoryFilters":
        return DirectoryFilters(sort=self.sort)


class DirectorySource(Protocol):
    def list_developers(self, filters: DirectoryFilters, page_size: int = DEFAULT_PAGE_SIZE) -> DeveloperPage:
        ...

    def get_developer(self, developer_id: str) -> Developer:
        ...

    def create_developer(self, fields: Mapping[str, Any]) -> Developer:
        ...

    def update_developer(self, developer_id: str, fields: Mapping[str, Any]) -> Developer:
        ...

    def delete_developer(self, developer_id: str) -> None:
        ...


class HttpDirectorySource:
    """Talk to a running directory service over HTTP."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        client: Optional[httpx.Client] = None,
        token: Optional[str] = None,
        timeout: float = 10.0,
    ) -> None:
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self._owns_client = client is None
        self._token = token

    @property
    def token(self) -> Optional[str]:
        return self._token

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "HttpDirectorySource":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def signup(self, name: str, email: str, password: str) -> Dict[str, Any]:
        payload = self._request("POST", "/auth/signup", json={"name": name, "email": email, "password": password})
        self._token = payload["token"]
        return payload["user"]

    def login(self, email: str, password: str) -> Dict[str, Any]:
        payload = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self._token = payload["token"]
        return payload["user"]

    def logout(self) -> None:
        self._token = None

    def list_developers(self, filters: DirectoryFilters, page_size: int = DEFAULT_PAGE_SIZE) -> DeveloperPage:
        payload = self._request("GET", "/developers", params=filters.to_params(page_size))
        return DeveloperPage(
            data=tuple(Developer.from_dict(item) for item in payload["data"]),
            total=int(payload["total"]),
            page=int(payload["page"]),
            total_pages=int(payload["totalPages"]),
        )

    def get_developer(self, developer_id: str) -> Developer:
        return Developer.from_dict(self._request("GET", f"/developers/{developer_id}"))

    def create_developer(self, fields: Mapping[str, Any]) -> Developer:
        return Developer.from_dict(self._request("POST", "/developers", json=dict(fields)))

    def update_developer(self, developer_id: str, fields: Mapping[str, Any]) -> Developer:
        return Developer.from_dict(self._request("PATCH", f"/developers/{developer_id}", json=dict(fields)))

    def delete_developer(self, developer_id: str) -> None:
        self._request("DELETE", f"/developers/{developer_id}")

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        response = self._client.request(method, url, headers=headers, **kwargs)
        if response.is_error:
            raise self._error_from_response(response)
        if response.status_code == httpx.codes.NO_CONTENT or not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_from_response(response: httpx.Response) -> DirectoryError:
        try:
            body = response.json().get("error", {})
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        error = error_from_code(body.get("code"), body.get("message"))
        error.details = list(body.get("details") or [])
        logger.debug("Request failed with %s %s", response.status_code, error.code)
        return error


class OfflineDirectorySource:
    """In-memory copy of the example developers, queried with the same engine."""

    def __init__(self, developers: Optional[List[Developer]] = None) -> None:
        self._lock = threading.Lock()
        if developers is None:
            developers = [self._build(self._to_fields(entry, partial=False)) for entry in SEED_DEVELOPERS]
        self._developers: Dict[str, Developer] = {developer.id: developer for developer in developers}

    def list_developers(self, filters: DirectoryFilters, page_size: int = DEFAULT_PAGE_SIZE) -> DeveloperPage:
        return run_query(tuple(self._developers.values()), filters.to_query(page_size))

    def get_developer(self, developer_id: str) -> Developer:
        try:
            return self._developers[developer_id]
        except KeyError:
            raise NotFound(f"Developer {developer_id} not found.") from None

    def create_developer(self, fields: Mapping[str, Any]) -> Developer:
        developer = self._build(self._to_fields(fields, partial=False))
        with self._lock:
            self._developers = {**self._developers, developer.id: developer}
        return developer

    def update_developer(self, developer_id: str, fields: Mapping[str, Any]) -> Developer:
        cleaned = self._to_fields(fields, partial=True)
        with self._lock:
            existing = self.get_developer(developer_id)
            updated = dataclasses.replace(existing, updated_at=datetime.now(timezone.utc), **cleaned)
            self._developers = {**self._developers, developer_id: updated}
        return updated

    def delete_developer(self, developer_id: str) -> None:
        with self._lock:
            self.get_developer(developer_id)
            self._developers = {key: value for key, value in self._developers.items() if key != developer_id}

    @staticmethod
    def _to_fields(fields: Mapping[str, Any], *, partial: bool) -> Dict[str, Any]:
        renamed = {_FIELD_NAMES.get(key, key): value for key, value in fields.items()}
        return validate_developer_fields(renamed, partial=partial)

    @staticmethod
    def _build(fields: Dict[str, Any]) -> Developer:
        now = datetime.now(timezone.utc)
        values = {"about": None, "joining_date": None, **fields}
        return Developer(id=str(uuid.uuid4()), created_by=None, created_at=now, updated_at=now, **values)


__all__ = ["DirectoryFilters", "DirectorySource", "HttpDirectorySource", "OfflineDirectorySource"]

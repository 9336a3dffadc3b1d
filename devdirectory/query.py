"""Filter, sort and paginate developer snapshots.

Everything here is a pure function of its inputs: the same snapshot and query
always produce the same page, and nothing reads the clock or touches the store.
The pipeline runs role filter, tech filter, name search, stable sort, then
pagination, in that order.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import InvalidParameter
from .models import Developer

DEFAULT_PAGE_SIZE = 9


class SortKey(str, Enum):
    NEWEST = "newest"
    EXPERIENCE_ASC = "experience_asc"
    EXPERIENCE_DESC = "experience_desc"


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


@dataclass(frozen=True)
class DeveloperQuery:
    role: Optional[str] = None
    tech: Optional[str] = None
    search: Optional[str] = None
    sort: SortKey = SortKey.NEWEST
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if isinstance(self.page, bool) or not isinstance(self.page, int) or self.page < 1:
            raise InvalidParameter("page must be an integer greater than or equal to 1")
        if isinstance(self.page_size, bool) or not isinstance(self.page_size, int) or self.page_size <= 0:
            raise InvalidParameter("pageSize must be a positive integer")
        if not isinstance(self.sort, SortKey):
            raise InvalidParameter(f"sort must be one of: {', '.join(key.value for key in SortKey)}")

    @classmethod
    def from_params(
        cls,
        *,
        role: Optional[str] = None,
        tech: Optional[str] = None,
        search: Optional[str] = None,
        sort: Optional[str] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> "DeveloperQuery":
        """Build a query from raw request values, treating blank strings as absent."""

        sort_value = _blank_to_none(sort)
        if sort_value is None:
            sort_key = SortKey.NEWEST
        else:
            try:
                sort_key = SortKey(sort_value.lower())
            except ValueError:
                raise InvalidParameter(
                    f"sort must be one of: {', '.join(key.value for key in SortKey)}"
                ) from None
        return cls(
            role=_blank_to_none(role),
            tech=_blank_to_none(tech),
            search=_blank_to_none(search),
            sort=sort_key,
            page=page,
            page_size=page_size,
        )


@dataclass(frozen=True)
class DeveloperPage:
    data: Tuple[Developer, ...]
    total: int
    page: int
    total_pages: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": [developer.to_dict() for developer in self.data],
            "total": self.total,
            "page": self.page,
            "totalPages": self.total_pages,
        }


def matches_role(developer: Developer, role: str) -> bool:
    return developer.role.value.lower() == role.lower()


def matches_tech(developer: Developer, tech: str) -> bool:
    needle = tech.lower()
    return any(needle in item.lower() for item in developer.tech_stack)


def matches_search(developer: Developer, search: str) -> bool:
    return search.lower() in developer.name.lower()


def filter_developers(developers: Iterable[Developer], query: DeveloperQuery) -> List[Developer]:
    results = list(developers)
    if query.role:
        results = [developer for developer in results if matches_role(developer, query.role)]
    if query.tech:
        results = [developer for developer in results if matches_tech(developer, query.tech)]
    if query.search:
        results = [developer for developer in results if matches_search(developer, query.search)]
    return results


def sort_developers(developers: Sequence[Developer], key: SortKey) -> List[Developer]:
    # sorted() is stable, including with reverse=True.
    if key is SortKey.EXPERIENCE_ASC:
        return sorted(developers, key=lambda developer: developer.experience)
    if key is SortKey.EXPERIENCE_DESC:
        return sorted(developers, key=lambda developer: developer.experience, reverse=True)
    return sorted(developers, key=lambda developer: developer.created_at, reverse=True)


def paginate(developers: Sequence[Developer], page: int, page_size: int) -> DeveloperPage:
    total = len(developers)
    total_pages = math.ceil(total / page_size)
    start = (page - 1) * page_size
    return DeveloperPage(
        data=tuple(developers[start:start + page_size]),
        total=total,
        page=page,
        total_pages=total_pages,
    )


def run_query(developers: Iterable[Developer], query: DeveloperQuery) -> DeveloperPage:
    """Apply ``query`` to a developer snapshot and return one page of results."""

    filtered = filter_developers(developers, query)
    ordered = sort_developers(filtered, query.sort)
    return paginate(ordered, query.page, query.page_size)


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "DeveloperPage",
    "DeveloperQuery",
    "SortKey",
    "filter_developers",
    "matches_role",
    "matches_search",
    "matches_tech",
    "paginate",
    "run_query",
    "sort_developers",
]

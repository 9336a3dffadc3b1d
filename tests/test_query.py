from __future__ import annotations

import itertools
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from devdirectory.errors import InvalidParameter
from devdirectory.models import Developer, Role
from devdirectory.query import (
    DeveloperQuery,
    SortKey,
    matches_role,
    matches_search,
    matches_tech,
    paginate,
    run_query,
    sort_developers,
)
from devdirectory.store import SEED_DEVELOPERS

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _seed() -> List[Developer]:
    developers = []
    for index, entry in enumerate(SEED_DEVELOPERS):
        stamp = BASE_TIME + timedelta(minutes=index)
        developers.append(
            Developer(
                id=f"dev-{index}",
                name=entry["name"],
                role=Role(entry["role"]),
                tech_stack=tuple(entry["techStack"]),
                experience=entry["experience"],
                created_by=None,
                created_at=stamp,
                updated_at=stamp,
            )
        )
    return developers


def _names(page) -> List[str]:
    return [developer.name for developer in page.data]


@pytest.mark.parametrize("role", ["backend", "Backend", "BACKEND"])
def test_role_filter_is_case_insensitive(role: str) -> None:
    page = run_query(_seed(), DeveloperQuery.from_params(role=role, page_size=20))

    assert page.total == 4
    assert all(developer.role is Role.BACKEND for developer in page.data)


def test_role_filter_scenario_with_three_backend_developers() -> None:
    developers = [
        developer
        if developer.name != "Michael Brown"
        else Developer(**{**developer.__dict__, "role": Role.FULL_STACK})
        for developer in _seed()
    ]
    assert len(developers) == 11

    page = run_query(developers, DeveloperQuery.from_params(role="backend"))

    assert page.total == 3
    assert sorted(_names(page)) == ["David Kim", "Maria Garcia", "Vikram Patel"]


def test_tech_filter_matches_substring_in_any_entry() -> None:
    page = run_query(_seed(), DeveloperQuery.from_params(tech="tail", page_size=20))
    assert sorted(_names(page)) == ["Lisa Wong", "Priya Singh"]

    page = run_query(_seed(), DeveloperQuery.from_params(tech="NODE", page_size=20))
    assert sorted(_names(page)) == ["Aman Roy", "Vikram Patel"]


def test_search_matches_name_substring() -> None:
    page = run_query(_seed(), DeveloperQuery.from_params(search="wo", page_size=20))
    assert sorted(_names(page)) == ["Lisa Wong"]

    page = run_query(_seed(), DeveloperQuery.from_params(search="  ", page_size=20))
    assert page.total == 11


def test_filters_compose_as_intersection_in_any_order() -> None:
    developers = _seed()
    predicates = [
        lambda developer: matches_role(developer, "frontend"),
        lambda developer: matches_tech(developer, "react"),
        lambda developer: matches_search(developer, "a"),
    ]
    expected = {
        developer.id
        for developer in developers
        if all(predicate(developer) for predicate in predicates)
    }

    for ordering in itertools.permutations(predicates):
        remaining = developers
        for predicate in ordering:
            remaining = [developer for developer in remaining if predicate(developer)]
        assert {developer.id for developer in remaining} == expected

    page = run_query(developers, DeveloperQuery.from_params(role="frontend", tech="react", search="a", page_size=20))
    assert {developer.id for developer in page.data} == expected
    assert expected == {"dev-1", "dev-6"}


def test_second_page_of_eleven_with_page_size_nine() -> None:
    page = run_query(_seed(), DeveloperQuery.from_params(page=2, page_size=9))

    assert len(page.data) == 2
    assert page.total == 11
    assert page.total_pages == 2
    assert page.page == 2


@pytest.mark.parametrize("total", [0, 1, 8, 9, 10, 11])
@pytest.mark.parametrize("page_size", [1, 3, 9, 20])
def test_pages_partition_the_result(total: int, page_size: int) -> None:
    ordered = _seed()[:total]
    first = paginate(ordered, 1, page_size)
    seen: List[str] = []
    for number in range(1, first.total_pages + 1):
        page = paginate(ordered, number, page_size)
        assert len(page.data) <= page_size
        seen.extend(developer.id for developer in page.data)

    assert len(seen) == total
    assert len(set(seen)) == total
    assert (first.total_pages == 0) == (total == 0)


def test_out_of_range_page_is_empty_not_an_error() -> None:
    page = run_query(_seed(), DeveloperQuery.from_params(page=5, page_size=9))

    assert page.data == ()
    assert page.total == 11
    assert page.total_pages == 2
    assert page.page == 5


def test_empty_result() -> None:
    page = run_query(_seed(), DeveloperQuery.from_params(search="nobody"))
    assert page.to_dict() == {"data": [], "total": 0, "page": 1, "totalPages": 0}


def test_newest_sort_is_default_and_descending_by_creation() -> None:
    page = run_query(_seed(), DeveloperQuery.from_params(page_size=20))
    assert _names(page)[0] == "Michael Brown"
    assert _names(page)[-1] == "Aman Roy"


def test_experience_sorts_are_stable() -> None:
    developers = _seed()

    ascending = sort_developers(developers, SortKey.EXPERIENCE_ASC)
    descending = sort_developers(developers, SortKey.EXPERIENCE_DESC)

    assert [developer.experience for developer in ascending] == sorted(d.experience for d in developers)
    for ordered in (ascending, descending):
        for experience in {developer.experience for developer in developers}:
            original = [d.id for d in developers if d.experience == experience]
            after = [d.id for d in ordered if d.experience == experience]
            assert after == original

    assert [d.name for d in descending[:2]] == ["Robert Taylor", "Maria Garcia"]
    assert [d.name for d in descending if d.experience == 4] == [
        "Vikram Patel",
        "Emma Wilson",
        "Michael Brown",
    ]


def test_newest_sort_keeps_ties_in_input_order() -> None:
    developers = [
        Developer(**{**developer.__dict__, "created_at": BASE_TIME}) for developer in _seed()
    ]
    ordered = sort_developers(developers, SortKey.NEWEST)
    assert [d.id for d in ordered] == [d.id for d in developers]


def test_query_is_pure() -> None:
    developers = tuple(_seed())
    query = DeveloperQuery.from_params(tech="react", sort="experience_desc", page_size=2)

    assert run_query(developers, query) == run_query(developers, query)
    assert developers == tuple(_seed())


@pytest.mark.parametrize(
    "params",
    [
        {"page": 0},
        {"page": -3},
        {"page_size": 0},
        {"page_size": -1},
        {"sort": "oldest"},
    ],
)
def test_invalid_parameters(params) -> None:
    with pytest.raises(InvalidParameter):
        DeveloperQuery.from_params(**params)


def test_sort_key_accepts_any_case() -> None:
    assert DeveloperQuery.from_params(sort="Experience_ASC").sort is SortKey.EXPERIENCE_ASC
    assert DeveloperQuery.from_params(sort="").sort is SortKey.NEWEST

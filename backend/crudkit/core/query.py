"""
crudkit Backend — Query & Pagination Value Objects
===================================================

What:  Parses list query strings and carries pagination between the
       controller and the store.
Who:   ResourceController.list() builds these; stores consume PagingQuery
       and return PaginationResult.

Query string format:
    GET /notifications?filter[type]=system&filter[status]=active
                       &page=2&pageSize=20&sort=-createdAt,title

    - filter[<key>]:  filter value; repeating the key yields a list (IN match)
    - page:           1-based page number
    - pageSize:       items per page (page_size also accepted)
    - sort:           comma-separated fields, '-' prefix for descending
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Iterable, List, Mapping, Optional, Tuple, TypeVar, Union

from crudkit.exceptions import ValidationError

FilterValue = Union[str, List[str]]

_FILTER_KEY = re.compile(r"^filter\[(?P<key>[^\]]+)\]$")

T = TypeVar("T")


@dataclass
class QueryParams:
    """Request-scoped view of the query string. Created fresh per request."""

    filter: Dict[str, FilterValue] = field(default_factory=dict)
    page: int = 1
    page_size: Optional[int] = None
    sort: List[str] = field(default_factory=list)


def _pairs(query: Any) -> Iterable[Tuple[str, Any]]:
    # Starlette's QueryParams keeps repeated keys; plain dicts may hold lists
    if hasattr(query, "multi_items"):
        return query.multi_items()
    pairs = []
    for key, value in query.items():
        if isinstance(value, (list, tuple)):
            pairs.extend((key, item) for item in value)
        else:
            pairs.append((key, value))
    return pairs


def _positive_int(name: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(message=f"'{name}' must be an integer", field=name)
    if number < 1:
        raise ValidationError(message=f"'{name}' must be greater than 0", field=name)
    return number


def parse_query(query: Mapping[str, Any]) -> QueryParams:
    """
    Parse a request query string into QueryParams.

    Unknown keys are ignored. Empty filter values are dropped so
    `filter[type]=` does not filter on the empty string.
    """
    params = QueryParams()

    for key, value in _pairs(query):
        match = _FILTER_KEY.match(key)
        if match:
            if value in (None, ""):
                continue
            name = match.group("key")
            current = params.filter.get(name)
            if current is None:
                params.filter[name] = value
            elif isinstance(current, list):
                current.append(value)
            else:
                params.filter[name] = [current, value]
        elif key == "page":
            params.page = _positive_int("page", value)
        elif key in ("pageSize", "page_size"):
            params.page_size = _positive_int("pageSize", value)
        elif key == "sort" and value:
            params.sort.extend(part.strip() for part in str(value).split(",") if part.strip())

    return params


@dataclass
class PagingQuery:
    """Page window handed to Store.filter_pagination()."""

    page: int = 1
    page_size: int = 20
    sort: List[str] = field(default_factory=list)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @classmethod
    def from_params(cls, params: QueryParams, default_page_size: int) -> "PagingQuery":
        return cls(
            page=params.page,
            page_size=params.page_size or default_page_size,
            sort=list(params.sort),
        )


@dataclass
class PaginationResult(Generic[T]):
    """One page of records plus the totals needed for the response meta."""

    data: List[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total / self.page_size)

    def meta(self) -> Dict[str, int]:
        return {
            "page": self.page,
            "pageSize": self.page_size,
            "total": self.total,
            "totalPages": self.total_pages,
        }

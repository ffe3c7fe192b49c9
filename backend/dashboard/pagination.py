"""Listing query normalisation.

`parse_page_request` turns raw query parameters (strings or lists of
strings, as produced by a URL query string) into a `PageRequest`. Bad
numbers never fail the request; they fall back to defaults:

- `page`: not an integer, or < 1  -> 1
- `page` whose offset would overflow a 64-bit integer -> 1
- `per_page`: not an integer, or < 1 -> `default_per_page` (10)
- `per_page` > `max_per_page` -> `max_per_page`
- keys listed in `filter_keys` with a non-empty value become filters
- every other key is ignored

Only a value that cannot be read as a string at all (e.g. a mapping)
raises `ValidationError`.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .schemas import ListingParams

DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 10
MAX_PER_PAGE = 100
# Offsets are bound as signed 64-bit integers by the database driver.
MAX_OFFSET = 2**63 - 1

_INTEGER = re.compile(r"[+-]?[0-9]+", re.ASCII)


@dataclass(frozen=True)
class PageRequest:
    page: int = DEFAULT_PAGE
    per_page: int = DEFAULT_PER_PAGE
    sort: Optional[str] = None
    filters: Dict[str, str] = field(default_factory=dict)

    @property
    def limit(self) -> int:
        return self.per_page

    @property
    def offset(self) -> int:
        """Number of rows to skip for this page."""
        return (self.page - 1) * self.per_page

    def cache_key(self, prefix: str) -> str:
        """Stable key describing the query shape, used by the listing cache."""
        filters = ",".join(f"{k}={v}" for k, v in sorted(self.filters.items()))
        return f"{prefix}:page={self.page}:per_page={self.per_page}:sort={self.sort or ''}:filters={filters}"


def _to_int(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    raw = raw.strip()
    if not _INTEGER.fullmatch(raw):
        return None
    try:
        return int(raw)
    except ValueError:
        # past the interpreter's digit limit for str -> int
        return None


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def parse_page_request(
    raw: Mapping[str, Any],
    filter_keys: Iterable[str] = (),
    default_per_page: int = DEFAULT_PER_PAGE,
    max_per_page: int = MAX_PER_PAGE,
) -> PageRequest:
    """Normalise raw query parameters into a `PageRequest`."""
    try:
        params = ListingParams.model_validate(dict(raw))
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc

    page = _to_int(params.page)
    if page is None or page < 1:
        page = DEFAULT_PAGE

    per_page = _to_int(params.per_page)
    if per_page is None or per_page < 1:
        per_page = default_per_page
    per_page = min(per_page, max_per_page)

    if (page - 1) > MAX_OFFSET // per_page:
        page = DEFAULT_PAGE

    sort = (params.sort or "").strip() or None

    filters = {}
    for key in filter_keys:
        value = _first(raw.get(key))
        if value is None:
            continue
        if not isinstance(value, (str, int, float)):
            raise ValidationError(f"{key}: filter value must be a string")
        value = str(value).strip()
        if value:
            filters[key] = value

    return PageRequest(page=page, per_page=per_page, sort=sort, filters=filters)


def page_count(total_count: int, limit: int) -> int:
    """Return `ceil(total_count / limit)`; `limit` must be >= 1."""
    if limit < 1:
        raise ValueError("limit must be >= 1")
    return math.ceil(max(total_count, 0) / limit)

"""Data-driven table shell for listing pages.

A table is an ordered list of `Column` descriptors plus optional
`RowAction`s. `TableShell` only needs `{items, total_count, limit}`; it
derives the page count, renders rows through each column's `render`
function, and links headers/pagination back to the same page with the
query string rewritten. Row actions are plain forms: deletes ask for a
browser confirmation and the row stays in place until the server has
deleted it and the page is rendered again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from html import escape
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence
from urllib.parse import urlencode

from .errors import StoreError
from .pagination import PageRequest, page_count

logger = logging.getLogger("dashboard.api")


def field_value(row: Any, key: str) -> Any:
    """Read `key` from a model or mapping; missing fields are None."""
    if isinstance(row, Mapping):
        return row.get(key)
    return getattr(row, key, None)


def text(value: Any) -> str:
    return "" if value is None else str(value)


@dataclass(frozen=True)
class Column:
    key: str
    display_name: str
    sortable: bool = False
    render: Optional[Callable[[Any], str]] = None
    sort_key: Optional[str] = None

    def cell(self, row: Any) -> str:
        """Cell text for `row`; a missing value renders as an empty string."""
        if self.render is None:
            return text(field_value(row, self.key))
        try:
            return text(self.render(row))
        except (AttributeError, KeyError, TypeError, IndexError):
            logger.debug("cell render fallback column=%s", self.key)
            return ""


@dataclass(frozen=True)
class RowAction:
    label: str
    url: Callable[[Any], str]
    method: str = "post"
    confirm: Optional[str] = None
    input_name: Optional[str] = None
    input_value: Optional[Callable[[Any], Any]] = None
    input_type: str = "number"

    def render(self, row: Any) -> str:
        href = escape(self.url(row))
        if self.method == "get":
            return f'<a class="action" href="{href}">{escape(self.label)}</a>'
        onsubmit = f' onsubmit="return confirm({escape(repr(self.confirm))})"' if self.confirm else ""
        field_html = ""
        if self.input_name:
            value = text(self.input_value(row)) if self.input_value else ""
            field_html = (
                f'<input type="{self.input_type}" name="{escape(self.input_name)}" '
                f'value="{escape(value)}" min="1" required />'
            )
        return (
            f'<form class="action" method="post" action="{href}"{onsubmit}>'
            f'{field_html}<button type="submit">{escape(self.label)}</button></form>'
        )


@dataclass
class TableShell:
    items: Sequence[Any]
    total_count: int
    limit: int
    columns: Sequence[Column]
    actions: Sequence[RowAction] = ()
    page: int = 1
    base_path: str = ""
    query: Dict[str, str] = field(default_factory=dict)
    sort: Optional[str] = None
    error: Optional[str] = None
    empty_message: str = "No results."

    @property
    def page_count(self) -> int:
        return page_count(self.total_count, self.limit)

    @classmethod
    def resolve(
        cls,
        loader: Callable[[], Any],
        request: PageRequest,
        columns: Sequence[Column],
        actions: Sequence[RowAction] = (),
        base_path: str = "",
        **kwargs,
    ) -> "TableShell":
        """Run `loader` and build the shell; a store failure yields the failed state."""
        query = {k: v for k, v in request.filters.items()}
        common = dict(
            limit=request.limit, columns=columns, actions=actions, page=request.page,
            base_path=base_path, query=query, sort=request.sort, **kwargs,
        )
        try:
            result = loader()
        except StoreError as exc:
            logger.exception("listing failed path=%s", base_path)
            return cls(items=[], total_count=0, error=exc.message, **common)
        return cls(items=list(result.items), total_count=result.total_count, **common)

    def url(self, **overrides: Any) -> str:
        params: Dict[str, Any] = dict(self.query)
        params.update({"page": self.page, "per_page": self.limit})
        if self.sort:
            params["sort"] = self.sort
        params.update(overrides)
        params = {k: v for k, v in params.items() if v not in (None, "")}
        return f"{self.base_path}?{urlencode(params)}"

    def _header(self, column: Column) -> str:
        title = escape(column.display_name)
        if not column.sortable:
            return f"<th>{title}</th>"
        key = column.sort_key or column.key
        direction = "desc" if self.sort == f"{key}.asc" else "asc"
        marker = {f"{key}.asc": " &#9650;", f"{key}.desc": " &#9660;"}.get(self.sort or "", "")
        href = escape(self.url(sort=f"{key}.{direction}", page=1))
        return f'<th><a href="{href}">{title}</a>{marker}</th>'

    def _rows(self) -> List[str]:
        width = len(self.columns) + (1 if self.actions else 0)
        if self.error:
            return [f'<tr><td colspan="{width}" class="error" role="alert">Could not load data: {escape(self.error)}</td></tr>']
        if not self.items:
            return [f'<tr><td colspan="{width}" class="empty">{escape(self.empty_message)}</td></tr>']
        rows = []
        for row in self.items:
            cells = [f"<td>{escape(c.cell(row))}</td>" for c in self.columns]
            if self.actions:
                cells.append('<td class="actions">' + "".join(a.render(row) for a in self.actions) + "</td>")
            rows.append("<tr>" + "".join(cells) + "</tr>")
        return rows

    def _pagination(self) -> str:
        pages = self.page_count
        parts = [f'<span class="page-info">Page {self.page} of {max(pages, 1)} &middot; {self.total_count} total</span>']
        if self.page > 1:
            parts.append(f'<a rel="prev" href="{escape(self.url(page=min(self.page - 1, max(pages, 1))))}">Previous</a>')
        if self.page < pages:
            parts.append(f'<a rel="next" href="{escape(self.url(page=self.page + 1))}">Next</a>')
        return '<nav class="pagination">' + " ".join(parts) + "</nav>"

    def render(self) -> str:
        header = "".join(self._header(c) for c in self.columns)
        if self.actions:
            header += '<th><span class="sr-only">Actions</span></th>'
        return (
            '<div class="data-table">'
            f"<table><thead><tr>{header}</tr></thead>"
            f"<tbody>{''.join(self._rows())}</tbody></table>"
            f"{self._pagination()}"
            "</div>"
        )


def _status(row: Any) -> str:
    return "Published" if field_value(row, "is_published") else "Draft"


def _active(row: Any) -> str:
    return "Yes" if field_value(row, "is_active") else "No"


def _date(value: Any) -> str:
    return value.strftime("%b %d, %Y %H:%M") if value else ""


COURSE_COLUMNS = [
    Column("name", "Name", sortable=True),
    Column("level", "Level", sortable=True),
    Column("is_published", "Status", sortable=True, render=_status, sort_key="isPublished"),
    Column("is_active", "Active", sortable=True, render=_active, sort_key="isActive"),
    Column("created_at", "Created", sortable=True, render=lambda r: _date(field_value(r, "created_at")), sort_key="createdAt"),
]

COURSE_ACTIONS = [
    RowAction("Edit", lambda r: f"/dashboard/courses/{field_value(r, 'id')}", method="get"),
    RowAction(
        "Delete",
        lambda r: f"/dashboard/courses/{field_value(r, 'id')}/delete",
        confirm="Delete this course and all of its topics?",
    ),
]


def _user_label(row: Any) -> str:
    name = text(field_value(row, "display_name"))
    email = text(field_value(row, "email"))
    if name and email:
        return f"{name} <{email}>"
    return name or email


USER_COLUMNS = [
    Column("display_name", "User", render=_user_label),
    Column("level", "Level"),
    Column("last_sign_in_at", "Last Signed In", render=lambda r: _date(field_value(r, "last_sign_in_at"))),
]

USER_ACTIONS = [
    RowAction(
        "Save level",
        lambda r: f"/dashboard/users/{field_value(r, 'id')}/level",
        input_name="level",
        input_value=lambda r: field_value(r, "level"),
    ),
    RowAction(
        "Delete",
        lambda r: f"/dashboard/users/{field_value(r, 'id')}/delete",
        confirm="Delete this user?",
    ),
]

from types import SimpleNamespace

import pytest

from conftest import make_user
from dashboard.errors import StoreError
from dashboard.pagination import PageRequest
from dashboard.schemas import PageResult, UserOut
from dashboard.services import project_user
from dashboard.tables import (
    COURSE_ACTIONS,
    COURSE_COLUMNS,
    USER_ACTIONS,
    USER_COLUMNS,
    Column,
    TableShell,
)


def _course(n, **kw):
    data = dict(id=n, name=f"Course {n}", level=1, is_published=False, is_active=True, created_at=None)
    data.update(kw)
    return SimpleNamespace(**data)


@pytest.mark.parametrize("total,limit,expected", [(0, 10, 0), (10, 10, 1), (25, 10, 3)])
def test_page_count_is_derived(total, limit, expected):
    shell = TableShell(items=[], total_count=total, limit=limit, columns=COURSE_COLUMNS)
    assert shell.page_count == expected


def test_empty_state():
    html = TableShell(items=[], total_count=0, limit=10, columns=COURSE_COLUMNS, actions=COURSE_ACTIONS).render()
    assert 'class="empty"' in html
    assert "No results." in html
    assert 'rel="next"' not in html


def test_rows_columns_and_escaping():
    rows = [_course(1, name="<script>x</script>", is_published=True), _course(2)]
    html = TableShell(items=rows, total_count=2, limit=10, columns=COURSE_COLUMNS, actions=COURSE_ACTIONS).render()
    assert "&lt;script&gt;" in html
    assert "<script>x" not in html
    assert "Published" in html and "Draft" in html
    assert 'href="/dashboard/courses/2"' in html


def test_delete_action_requires_confirmation():
    html = TableShell(items=[_course(5)], total_count=1, limit=10, columns=COURSE_COLUMNS, actions=COURSE_ACTIONS).render()
    assert 'action="/dashboard/courses/5/delete"' in html
    assert "onsubmit=\"return confirm(" in html


def test_missing_optional_fields_render_empty():
    users = [UserOut(id="user_1"), {"id": "user_2"}]
    columns = USER_COLUMNS + [Column("nickname", "Nickname"), Column("broken", "Broken", render=lambda r: r.missing.attr)]
    html = TableShell(items=users, total_count=2, limit=10, columns=columns, actions=USER_ACTIONS).render()
    assert html.count("<tr>") == 3
    assert "None" not in html


def test_user_rows_show_primary_email_only():
    html = TableShell(items=[project_user(make_user(4))], total_count=1, limit=10, columns=USER_COLUMNS).render()
    assert "user4@example.com" in html
    assert "old4@example.com" not in html
    assert "gmail.com" not in html


def test_sortable_headers_and_pagination_links_keep_query():
    shell = TableShell(
        items=[_course(1)], total_count=35, limit=10, columns=COURSE_COLUMNS,
        page=2, base_path="/dashboard/courses", query={"name": "py"}, sort="name.asc",
    )
    html = shell.render()
    assert "sort=name.desc" in html
    assert "Page 2 of 4" in html
    assert 'rel="prev" href="/dashboard/courses?name=py&amp;page=1&amp;per_page=10&amp;sort=name.asc"' in html
    assert 'rel="next" href="/dashboard/courses?name=py&amp;page=3&amp;per_page=10&amp;sort=name.asc"' in html


def test_resolve_builds_shell_from_result():
    request = PageRequest(page=1, per_page=2, filters={"name": "c"})
    result = PageResult(items=[_course(1), _course(2)], total_count=5)
    shell = TableShell.resolve(lambda: result, request, COURSE_COLUMNS, base_path="/dashboard/courses")
    assert shell.page_count == 3
    assert shell.query == {"name": "c"}
    assert shell.error is None


def test_resolve_degrades_to_failed_state():
    def boom():
        raise StoreError("identity provider unavailable")

    shell = TableShell.resolve(boom, PageRequest(), USER_COLUMNS, USER_ACTIONS)
    html = shell.render()
    assert shell.items == []
    assert 'role="alert"' in html
    assert "identity provider unavailable" in html

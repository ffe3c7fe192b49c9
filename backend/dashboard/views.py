"""Server-rendered page markup.

Pages are plain HTML strings: a shared `layout` with navigation and the
transient toast, plus the bodies for the courses, course detail and
users screens. All dynamic values are escaped here or by the table
shell.
"""

from html import escape
from typing import Optional, Sequence

from .schemas import CourseOut, TopicOut
from .tables import TableShell

STYLE = """
body { font-family: Arial, sans-serif; margin: 0; color: #222; }
nav.main { background: #0a6; padding: 12px 32px; }
nav.main a { color: #fff; margin-right: 16px; text-decoration: none; }
main { padding: 24px 32px; max-width: 1100px; }
table { border-collapse: collapse; width: 100%; }
th, td { border-bottom: 1px solid #ddd; padding: 8px; text-align: left; }
td.empty { color: #777; text-align: center; }
td.error { color: #b00; text-align: center; }
.toast { padding: 10px 16px; border-radius: 6px; margin-bottom: 16px; }
.toast.success { background: #e6f7ee; border: 1px solid #0a6; }
.toast.error { background: #fdecec; border: 1px solid #b00; }
form.action { display: inline; margin-right: 6px; }
form.stack label { display: block; margin-top: 8px; }
.sr-only { position: absolute; left: -9999px; }
.pagination { margin-top: 12px; }
.pagination a { margin-left: 12px; }
"""


def layout(title: str, body: str, toast: Optional[str] = None, toast_kind: str = "success") -> str:
    """Wrap `body` (already-rendered HTML) in the dashboard page chrome."""
    kind = "error" if toast_kind == "error" else "success"
    toast_html = f'<div class="toast {kind}" role="status">{escape(toast)}</div>' if toast else ""
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <title>{escape(title)} &middot; Dashboard</title>
  <style>{STYLE}</style>
</head>
<body>
  <nav class="main">
    <a href="/dashboard/courses">Courses</a>
    <a href="/dashboard/users">Users</a>
  </nav>
  <main>
    {toast_html}
    <h1>{escape(title)}</h1>
    {body}
  </main>
</body>
</html>"""


def _filter_form(shell: TableShell) -> str:
    name = escape(shell.query.get("name", ""))
    status = shell.query.get("status", "")
    options = "".join(
        f'<option value="{v}"{" selected" if status == v else ""}>{label}</option>'
        for v, label in (("", "Any status"), ("published", "Published"), ("draft", "Draft"))
    )
    return (
        f'<form class="filters" method="get" action="{escape(shell.base_path)}">'
        f'<input type="search" name="name" value="{name}" placeholder="Filter names..." />'
        f'<select name="status">{options}</select>'
        f'<input type="hidden" name="per_page" value="{shell.limit}" />'
        '<button type="submit">Filter</button></form>'
    )


def courses_page(shell: TableShell) -> str:
    create_form = """
    <details><summary>Add course</summary>
    <form class="stack" method="post" action="/dashboard/courses">
      <label>Name <input name="name" minlength="3" maxlength="50" required /></label>
      <label>Level <input name="level" type="number" min="1" value="1" required /></label>
      <label>Description <textarea name="description"></textarea></label>
      <label><input type="checkbox" name="isPublished" value="true" /> Published</label>
      <button type="submit">Add course</button>
    </form></details>"""
    return create_form + _filter_form(shell) + shell.render()


def _topic_item(topic: TopicOut) -> str:
    links = "".join(
        f'<li><a href="{escape(m.url)}">{escape(m.name or m.url)}</a></li>' for m in topic.materials
    )
    video = f' &middot; <a href="{escape(topic.youtube_url)}">video</a>' if topic.youtube_url else ""
    return (
        f"<li><strong>{escape(topic.name)}</strong>{video}"
        f"<p>{escape(topic.description)}</p>"
        f"{'<ul>' + links + '</ul>' if links else ''}</li>"
    )


def course_detail_page(course: CourseOut, topics: Sequence[TopicOut]) -> str:
    checked = " checked" if course.is_published else ""
    active = " checked" if course.is_active else ""
    topics_html = "".join(_topic_item(t) for t in topics) or '<li class="empty">No topics yet.</li>'
    return f"""
    <form class="stack" method="post" action="/dashboard/courses/{course.id}">
      <label>Name <input name="name" value="{escape(course.name)}" minlength="3" maxlength="50" required /></label>
      <label>Level <input name="level" type="number" min="1" value="{course.level}" required /></label>
      <label>Description <textarea name="description">{escape(course.description or "")}</textarea></label>
      <label><input type="checkbox" name="isPublished" value="true"{checked} /> Published</label>
      <input type="hidden" name="isActive" value="false" />
      <label><input type="checkbox" name="isActive" value="true"{active} /> Active</label>
      <button type="submit">Save changes</button>
    </form>
    <form class="action" method="post" action="/dashboard/courses/{course.id}/publish">
      <button type="submit"{" disabled" if course.is_published else ""}>Publish</button>
    </form>
    <form class="action" method="post" action="/dashboard/courses/{course.id}/delete"
          onsubmit="return confirm('Delete this course and all of its topics?')">
      <button type="submit">Delete course</button>
    </form>
    <h2>Topics</h2>
    <ul class="topics">{topics_html}</ul>
    <details><summary>Add topic</summary>
    <form class="stack" method="post" action="/dashboard/courses/{course.id}/topics">
      <label>Name <input name="name" minlength="3" maxlength="50" required /></label>
      <label>YouTube id <input name="youtubeId" /></label>
      <label>YouTube URL <input name="youtubeUrl" type="url" /></label>
      <label>Description <textarea name="description"></textarea></label>
      <label>Material name <input name="materialName" /></label>
      <label>Material URL <input name="materialUrl" type="url" /></label>
      <button type="submit">Add topic</button>
    </form></details>"""


def users_page(shell: TableShell) -> str:
    return '<p>Manage your users settings</p>' + shell.render()

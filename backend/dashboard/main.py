"""FastAPI application entrypoint and HTTP controllers.

This module defines the dashboard's HTML pages, their form actions and
the JSON API. Controllers are intentionally thin: they normalise query
parameters, delegate to services, and render a page, redirect or JSON
response.

Pages:
- GET  /dashboard/courses, /dashboard/courses/{id}, /dashboard/users
- POST form actions under /dashboard/... (redirect back with a toast)

API:
- GET/POST /api/courses, GET /api/courses/active, GET /api/courses/count
- GET/PUT/DELETE /api/courses/{id}, POST /api/courses/{id}/publish
- GET/POST /api/courses/{id}/topics, POST /api/topics/check
- GET /api/users, PATCH /api/users/{id}/level, DELETE /api/users/{id}
"""

import json
import logging
import time
import uuid
from html import escape
from typing import Callable, Optional
from urllib.parse import urlencode

from fastapi import Depends, FastAPI, Form, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from sqlmodel import Session

from . import services
from .auth import require_admin
from .cache import ListingCache
from .config import settings
from .database import create_db_and_tables, get_session
from .directory import ClerkDirectory, UserDirectory
from .errors import DashboardError, StoreError, ValidationError
from .pagination import PageRequest, page_count, parse_page_request
from .repositories import COURSE_FILTER_KEYS
from .schemas import CourseIn, CourseUpdateIn, TopicCheckIn, TopicIn, UserLevelIn
from .tables import COURSE_ACTIONS, COURSE_COLUMNS, USER_ACTIONS, USER_COLUMNS, TableShell
from .views import course_detail_page, courses_page, layout, users_page

app = FastAPI(title="Course Dashboard")
logger = logging.getLogger("dashboard.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

app.state.listing_cache = ListingCache(max_age=settings.LISTING_CACHE_MAX_AGE)
app.state.directory = ClerkDirectory()

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            },
            ensure_ascii=True,
        ),
    )
    return response


@app.exception_handler(DashboardError)
async def dashboard_error_handler(request: Request, exc: DashboardError):
    if isinstance(exc, StoreError):
        logger.error("store_error path=%s detail=%s", request.url.path, exc.message, exc_info=exc)
        if request.url.path.startswith("/dashboard"):
            body = "<p>The request could not be completed. Please try again.</p>"
            return HTMLResponse(layout("Something went wrong", body), status_code=500)
        return JSONResponse({"error": exc.code, "detail": "internal error"}, status_code=500)
    if request.url.path.startswith("/dashboard"):
        body = f"<p>{escape(exc.message)}</p><p><a href=\"/dashboard/courses\">Back to courses</a></p>"
        return HTMLResponse(layout("Request failed", body), status_code=exc.status_code)
    content = {"error": exc.code, "detail": exc.message}
    if isinstance(exc, ValidationError) and exc.errors:
        content["errors"] = exc.errors
    return JSONResponse(content, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [{k: v for k, v in err.items() if k in ("loc", "msg", "type")} for err in exc.errors()]
    detail = "; ".join(".".join(str(p) for p in e["loc"][1:]) + f": {e['msg']}" for e in errors)
    return JSONResponse({"error": ValidationError.code, "detail": detail, "errors": errors}, status_code=422)


def get_cache(request: Request) -> ListingCache:
    return request.app.state.listing_cache


def get_directory(request: Request) -> UserDirectory:
    return request.app.state.directory


def get_course_service(db: Session = Depends(get_session), cache: ListingCache = Depends(get_cache)):
    return services.CourseService(db, cache)


def get_topic_service(db: Session = Depends(get_session), cache: ListingCache = Depends(get_cache)):
    return services.TopicService(db, cache)


def get_user_service(directory: UserDirectory = Depends(get_directory)):
    return services.UserService(directory)


def _raw_params(request: Request) -> dict:
    qp = request.query_params
    return {k: qp.getlist(k) for k in qp.keys()}


def _page_request(request: Request, filter_keys=()) -> PageRequest:
    return parse_page_request(
        _raw_params(request),
        filter_keys=filter_keys,
        default_per_page=settings.DEFAULT_PER_PAGE,
        max_per_page=settings.MAX_PER_PAGE,
    )


def _toast(request: Request):
    return request.query_params.get("toast"), request.query_params.get("toast_kind", "success")


def _redirect(path: str, toast: str, kind: str) -> RedirectResponse:
    return RedirectResponse(f"{path}?{urlencode({'toast': toast, 'toast_kind': kind})}", status_code=303)


def _form_action(action: Callable[[], object], back: str, success: str, done: Optional[str] = None) -> RedirectResponse:
    """Run a mutating form action and redirect with a transient toast.

    Expected failures go back to `back` with an error toast and nothing
    persisted; store failures propagate to the error handler.
    """
    try:
        action()
    except StoreError:
        raise
    except DashboardError as exc:
        return _redirect(back, exc.message, "error")
    return _redirect(done or back, success, "success")


# ---- Pages -------------------------------------------------------------------

@app.get("/dashboard/courses", response_class=HTMLResponse)
def courses_index(request: Request, svc: services.CourseService = Depends(get_course_service), admin: dict = Depends(require_admin)):
    """Course table with filters, sorting and pagination."""
    page_request = _page_request(request, COURSE_FILTER_KEYS)
    shell = TableShell.resolve(
        lambda: svc.list_courses(page_request),
        page_request,
        COURSE_COLUMNS,
        COURSE_ACTIONS,
        base_path=services.COURSES_PATH,
    )
    toast, kind = _toast(request)
    return layout("Courses", courses_page(shell), toast, kind)


@app.get("/dashboard/courses/{course_id}", response_class=HTMLResponse)
def course_detail(
    course_id: int,
    request: Request,
    svc: services.CourseService = Depends(get_course_service),
    topic_svc: services.TopicService = Depends(get_topic_service),
    admin: dict = Depends(require_admin),
):
    course = svc.get_course(course_id)
    topics = topic_svc.list_topics(course_id)
    toast, kind = _toast(request)
    return layout(course.name, course_detail_page(course, topics), toast, kind)


@app.post("/dashboard/courses")
def course_create_form(
    name: str = Form(default=""),
    level: str = Form(default=""),
    description: str = Form(default=""),
    isPublished: Optional[str] = Form(default=None),
    svc: services.CourseService = Depends(get_course_service),
    admin: dict = Depends(require_admin),
):
    payload = services.course_form_payload(
        {"name": name, "level": level, "description": description, "isPublished": isPublished}
    )
    return _form_action(lambda: svc.add_course(payload), services.COURSES_PATH, "Course added successfully.")


@app.post("/dashboard/courses/{course_id}")
def course_update_form(
    course_id: int,
    name: str = Form(default=""),
    level: str = Form(default=""),
    description: str = Form(default=""),
    isPublished: Optional[str] = Form(default=None),
    isActive: Optional[str] = Form(default=None),
    svc: services.CourseService = Depends(get_course_service),
    admin: dict = Depends(require_admin),
):
    payload = services.course_form_payload(
        {"name": name, "level": level, "description": description, "isPublished": isPublished, "isActive": isActive}
    )
    back = services.course_path(course_id)
    return _form_action(lambda: svc.update_course(course_id, payload), back, "Course updated successfully.")


@app.post("/dashboard/courses/{course_id}/publish")
def course_publish_form(course_id: int, svc: services.CourseService = Depends(get_course_service), admin: dict = Depends(require_admin)):
    back = services.course_path(course_id)
    return _form_action(lambda: svc.publish_course(course_id), back, "Course published.")


@app.post("/dashboard/courses/{course_id}/delete")
def course_delete_form(course_id: int, svc: services.CourseService = Depends(get_course_service), admin: dict = Depends(require_admin)):
    return _form_action(
        lambda: svc.delete_course(course_id),
        services.COURSES_PATH,
        "Course deleted successfully.",
        done=services.COURSES_PATH,
    )


@app.post("/dashboard/courses/{course_id}/topics")
def topic_create_form(
    course_id: int,
    name: str = Form(default=""),
    youtubeId: str = Form(default=""),
    youtubeUrl: str = Form(default=""),
    description: str = Form(default=""),
    materialName: str = Form(default=""),
    materialUrl: str = Form(default=""),
    svc: services.TopicService = Depends(get_topic_service),
    admin: dict = Depends(require_admin),
):
    materials = [{"name": materialName or None, "url": materialUrl}] if materialUrl else []
    payload = {
        "name": name,
        "youtubeId": youtubeId,
        "youtubeUrl": youtubeUrl,
        "description": description,
        "materials": materials,
    }
    back = services.course_path(course_id)
    return _form_action(lambda: svc.add_topic(course_id, payload), back, "Topic added successfully.")


@app.get("/dashboard/users", response_class=HTMLResponse)
def users_index(request: Request, svc: services.UserService = Depends(get_user_service), admin: dict = Depends(require_admin)):
    """Users from the identity provider, one page at a time."""
    page_request = _page_request(request)
    shell = TableShell.resolve(
        lambda: svc.list_users(page_request),
        page_request,
        USER_COLUMNS,
        USER_ACTIONS,
        base_path=services.USERS_PATH,
    )
    toast, kind = _toast(request)
    return layout("Users", users_page(shell), toast, kind)


@app.post("/dashboard/users/{user_id}/level")
def user_level_form(user_id: str, level: str = Form(default=""), svc: services.UserService = Depends(get_user_service), admin: dict = Depends(require_admin)):
    return _form_action(lambda: svc.update_user_level(user_id, level), services.USERS_PATH, "User level updated.")


@app.post("/dashboard/users/{user_id}/delete")
def user_delete_form(user_id: str, svc: services.UserService = Depends(get_user_service), admin: dict = Depends(require_admin)):
    return _form_action(lambda: svc.delete_user(user_id), services.USERS_PATH, "User deleted successfully.")


# ---- JSON API ----------------------------------------------------------------

def _page_payload(result, page_request: PageRequest) -> dict:
    out = result.model_dump(by_alias=True, mode="json")
    out.update({
        "page": page_request.page,
        "perPage": page_request.per_page,
        "pageCount": page_count(result.total_count, page_request.limit),
    })
    return out


@app.get("/api/courses")
def api_list_courses(request: Request, svc: services.CourseService = Depends(get_course_service), admin: dict = Depends(require_admin)):
    page_request = _page_request(request, COURSE_FILTER_KEYS)
    return _page_payload(svc.list_courses(page_request), page_request)


@app.get("/api/courses/active")
def api_active_courses(svc: services.CourseService = Depends(get_course_service), admin: dict = Depends(require_admin)):
    return svc.get_active_courses()


@app.get("/api/courses/count")
def api_course_count(svc: services.CourseService = Depends(get_course_service), admin: dict = Depends(require_admin)):
    return svc.get_course_count()


@app.get("/api/courses/{course_id}")
def api_get_course(course_id: int, svc: services.CourseService = Depends(get_course_service), admin: dict = Depends(require_admin)):
    return svc.get_course(course_id)


@app.post("/api/courses", status_code=201)
def api_add_course(payload: CourseIn, svc: services.CourseService = Depends(get_course_service), admin: dict = Depends(require_admin)):
    return svc.add_course(payload)


@app.put("/api/courses/{course_id}")
def api_update_course(course_id: int, payload: CourseUpdateIn, svc: services.CourseService = Depends(get_course_service), admin: dict = Depends(require_admin)):
    return svc.update_course(course_id, payload)


@app.post("/api/courses/{course_id}/publish")
def api_publish_course(course_id: int, svc: services.CourseService = Depends(get_course_service), admin: dict = Depends(require_admin)):
    return svc.publish_course(course_id)


@app.delete("/api/courses/{course_id}", status_code=204)
def api_delete_course(course_id: int, svc: services.CourseService = Depends(get_course_service), admin: dict = Depends(require_admin)):
    svc.delete_course(course_id)
    return Response(status_code=204)


@app.get("/api/courses/{course_id}/topics")
def api_list_topics(course_id: int, svc: services.TopicService = Depends(get_topic_service), admin: dict = Depends(require_admin)):
    return svc.list_topics(course_id)


@app.post("/api/courses/{course_id}/topics", status_code=201)
def api_add_topic(course_id: int, payload: TopicIn, svc: services.TopicService = Depends(get_topic_service), admin: dict = Depends(require_admin)):
    return svc.add_topic(course_id, payload)


@app.post("/api/topics/check")
def api_check_topic(payload: TopicCheckIn, svc: services.TopicService = Depends(get_topic_service), admin: dict = Depends(require_admin)):
    svc.check_topic(payload.name)
    return {"available": True}


@app.get("/api/users")
def api_list_users(request: Request, svc: services.UserService = Depends(get_user_service), admin: dict = Depends(require_admin)):
    page_request = _page_request(request)
    return _page_payload(svc.list_users(page_request), page_request)


@app.patch("/api/users/{user_id}/level", status_code=204)
def api_update_user_level(user_id: str, payload: UserLevelIn, svc: services.UserService = Depends(get_user_service), admin: dict = Depends(require_admin)):
    svc.update_user_level(user_id, payload.level)
    return Response(status_code=204)


@app.delete("/api/users/{user_id}", status_code=204)
def api_delete_user(user_id: str, svc: services.UserService = Depends(get_user_service), admin: dict = Depends(require_admin)):
    svc.delete_user(user_id)
    return Response(status_code=204)


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}

# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Path as PathParam, Request
from fastapi.exception_handlers import http_exception_handler as default_http_exception_handler
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from motorsite.auth import captcha
from motorsite.auth.flow import AuthFlow, FlowResult, establish_identity
from motorsite.auth.passwords import configure_hasher
from motorsite.auth.remember import RememberCookies
from motorsite.auth.session import FLASH_KEY, Session, SessionBackend, SessionManager, backend_from_settings
from motorsite.auth.users import ALL_ROLES, UNIQUE_COLUMNS, USER, UserRepository
from motorsite.core.errors import NotFoundError
from motorsite.core.logging import configure_logging
from motorsite.core.middleware import global_exception_handler, log_requests
from motorsite.core.settings import Settings, load_settings
from motorsite.core.validation import Validator
from motorsite.infra.store import TableStore
from motorsite.permissions import CurrentUser, current_user_optional, load_user_from_session, require_role
from motorsite.services.story_service import StoryService

BASE_DIR = Path(__file__).resolve().parent

templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

router = APIRouter()


# ------------------ Dependencies ------------------


def get_session(request: Request) -> Session:
    return request.state.session


def get_validator() -> Validator:
    return Validator()


def get_users(request: Request) -> UserRepository:
    return request.app.state.users


def get_auth(request: Request) -> AuthFlow:
    return request.app.state.auth


def get_stories(request: Request) -> StoryService:
    return request.app.state.stories


def _render(request: Request, template_name: str, ctx: Optional[Dict[str, Any]] = None, status_code: int = 200):
    """TemplateResponse wrapper injecting the current user and consuming the flash data."""
    session: Optional[Session] = getattr(request.state, "session", None)
    flash = session.pop_flash() if session is not None else {}
    base_ctx = {
        "current_user": current_user_optional(request),
        "settings": request.app.state.settings,
        "flash": flash,
        "errors": flash.get("errors") or {},
        "old": flash.get("old") or {},
    }
    merged = {**base_ctx, **(ctx or {})}
    return templates.TemplateResponse(request, template_name, merged, status_code=status_code)


def _finish(request: Request, result: FlowResult) -> RedirectResponse:
    resp = RedirectResponse(url=result.redirect, status_code=303)
    remember: RememberCookies = request.app.state.remember
    if result.remember is not None:
        remember.issue(resp, result.remember)
    if result.forget:
        remember.clear(resp)
    return resp


async def _form(request: Request) -> Dict[str, Any]:
    form = await request.form()
    return {k: v for k, v in form.items() if isinstance(v, str)}


# ------------------ Routes ------------------


@router.get("/", response_class=HTMLResponse)
def home(request: Request):
    return _render(request, "home.html")


@router.get("/login", response_class=HTMLResponse)
def login_get(request: Request):
    return _render(request, "users/login.html")


@router.post("/login")
async def login_post(
    request: Request,
    session: Session = Depends(get_session),
    validator: Validator = Depends(get_validator),
    auth: AuthFlow = Depends(get_auth),
):
    data = await _form(request)
    return _finish(request, auth.login(data, session, validator))


@router.get("/register", response_class=HTMLResponse)
def register_get(request: Request):
    return _render(request, "users/register.html")


@router.get("/captcha")
def captcha_image(request: Request, session: Session = Depends(get_session)):
    """Fresh registration captcha; the code replaces any previous one in the session."""
    code = captcha.generate_code(request.app.state.settings)
    session.set(captcha.SESSION_KEY, code)
    return templates.TemplateResponse(
        request,
        "captcha.svg",
        {"width": captcha.WIDTH, "height": captcha.HEIGHT, "glyphs": captcha.layout(code), "lines": captcha.noise()},
        headers={"Cache-Control": "no-store"},
        media_type="image/svg+xml",
    )


@router.post("/register")
async def register_post(
    request: Request,
    session: Session = Depends(get_session),
    validator: Validator = Depends(get_validator),
    auth: AuthFlow = Depends(get_auth),
):
    data = await _form(request)
    return _finish(request, auth.register(data, session, validator))


@router.post("/logout")
def logout_post(
    request: Request,
    session: Session = Depends(get_session),
    auth: AuthFlow = Depends(get_auth),
):
    return _finish(request, auth.logout(session))


@router.get("/users", response_class=HTMLResponse)
def users_index(request: Request, users: UserRepository = Depends(get_users)):
    return _render(request, "users/index.html", {"users": users.all(), "roles": ALL_ROLES})


@router.get("/users/{login}", response_class=HTMLResponse)
def user_view(
    request: Request,
    login: str = PathParam(..., pattern=r"^[\w\-]+$"),
    users: UserRepository = Depends(get_users),
):
    user = users.find_by_login(login)
    if not user:
        raise HTTPException(status_code=404, detail="User not found!")
    return _render(request, "users/user.html", {"user": user, "roles": ALL_ROLES})


def _delete_story(request: Request, story_id: int, user: CurrentUser, stories: StoryService) -> RedirectResponse:
    story = stories.get(story_id)
    if story is None:
        raise HTTPException(status_code=404, detail="Story not found!")
    if story.get("user_id") != user.id and not user.is_admin():
        raise HTTPException(status_code=403, detail="Forbidden")

    try:
        stories.delete(story_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Story not found!")

    request.state.session.set(FLASH_KEY, {"success": "Story deleted!"})
    return RedirectResponse(url=request.app.state.auth.home_url, status_code=303)


@router.delete("/stories/{story_id}")
def story_destroy(
    request: Request,
    story_id: int,
    user: CurrentUser = Depends(require_role(USER)),
    stories: StoryService = Depends(get_stories),
):
    return _delete_story(request, story_id, user, stories)


@router.post("/stories/{story_id}/delete")
def story_destroy_form(
    request: Request,
    story_id: int,
    user: CurrentUser = Depends(require_role(USER)),
    stories: StoryService = Depends(get_stories),
):
    return _delete_story(request, story_id, user, stories)


# ------------------ Application ------------------


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """HTML error page for browsers, FastAPI's JSON body otherwise."""
    accept = request.headers.get("accept", "")
    if exc.status_code < 400 or "text/html" not in accept:
        return await default_http_exception_handler(request, exc)
    return _render(
        request,
        "errors/error.html",
        {"status_code": exc.status_code, "message": exc.detail},
        status_code=exc.status_code,
    )


async def server_error_handler(request: Request, exc: Exception):
    """Log the failure; browsers get the HTML error page instead of plain text."""
    response = await global_exception_handler(request, exc)
    if "text/html" not in request.headers.get("accept", ""):
        return response
    return _render(
        request,
        "errors/error.html",
        {"status_code": 500, "message": "Internal server error"},
        status_code=500,
    )


def create_app(settings: Optional[Settings] = None, *, session_backend: Optional[SessionBackend] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings)
    configure_hasher(settings)

    data_dir = Path(str(settings.get("app.data_dir", "data"))).resolve()
    store = TableStore(data_dir, unique={"users": UNIQUE_COLUMNS})

    app = FastAPI(debug=bool(settings.get("debug", False)))
    app.state.settings = settings
    app.state.store = store
    app.state.users = UserRepository(store)
    app.state.sessions = SessionManager(settings, session_backend if session_backend is not None else backend_from_settings(settings))
    app.state.remember = RememberCookies(settings)
    app.state.auth = AuthFlow(app.state.users, settings)
    app.state.stories = StoryService(store)

    @app.middleware("http")
    async def _session_middleware(request: Request, call_next):
        sessions: SessionManager = request.app.state.sessions
        users: UserRepository = request.app.state.users

        session = sessions.load(request.cookies.get(sessions.cookie_name))
        request.state.session = session

        user = load_user_from_session(session, users)
        if user is None:
            remembered = request.app.state.remember.resolve(request, users)
            if remembered is not None:
                establish_identity(session, remembered)
                user = CurrentUser(id=remembered.id, login=remembered.login, role=remembered.role)
        request.state.user = user

        response = await call_next(request)
        sessions.save(session, response)
        return response

    # Registered last so it wraps the session middleware.
    app.middleware("http")(log_requests)

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, server_error_handler)
    app.include_router(router)
    return app

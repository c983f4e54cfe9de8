"""Application factory and account endpoints for the logbook service."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response, status
from pydantic import BaseModel

from .api import error_response, install_error_handlers, register_log_routes
from .config import Settings, load_settings
from .context import RequestContext
from .database import Database
from .errors import AccountError
from .models import User
from .sessions import SESSION_COOKIE_NAME, SessionManager

logger = logging.getLogger("logbook.service")


class RegisterRequest(BaseModel):
    username: str
    email: Optional[str] = None
    password: str


class LoginRequest(BaseModel):
    username: str
    password: str


class EmailUpdateRequest(BaseModel):
    email: Optional[str] = None


class PasswordUpdateRequest(BaseModel):
    current_password: str
    new_password: str


class UserView(BaseModel):
    id: int
    username: str
    email: Optional[str] = None
    created_at: datetime


class SettingsView(BaseModel):
    allow_registration: bool


def _user_to_view(user: User) -> UserView:
    return UserView(id=user.id, username=user.username, email=user.email, created_at=user.created_at)


def _build_context_dependency(
    database: Database,
    settings: Settings,
    session_manager: SessionManager,
) -> Callable[[Request], RequestContext]:
    def dependency(request: Request) -> RequestContext:
        return RequestContext(
            database=database,
            settings=settings,
            session_manager=session_manager,
            token=request.cookies.get(SESSION_COOKIE_NAME),
        )

    return dependency


def _build_auth_dependency(context_dependency: Callable[[Request], RequestContext]) -> Callable[..., User]:
    def dependency(context: RequestContext = Depends(context_dependency)) -> User:
        return context.require_user()

    return dependency


def register_account_routes(
    app: FastAPI,
    database: Database,
    *,
    session_manager: SessionManager,
    context_dependency: Callable[[Request], RequestContext],
    current_user: Callable[..., User],
    secure_cookies: bool,
) -> None:
    """Expose registration, sign-in and self-service account endpoints."""

    router = APIRouter(prefix="/api")

    def _issue_session_cookie(response: Response, token: str) -> None:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            token,
            max_age=session_manager.cookie_max_age,
            secure=secure_cookies,
            httponly=True,
            samesite="lax",
            path="/",
        )

    def _clear_session_cookie(response: Response) -> None:
        response.delete_cookie(SESSION_COOKIE_NAME, path="/")

    @router.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @router.get("/settings", response_model=SettingsView)
    async def public_settings(context: RequestContext = Depends(context_dependency)) -> SettingsView:
        return SettingsView(**context.settings().public())

    @router.post("/register", response_model=UserView, status_code=status.HTTP_201_CREATED)
    async def register(
        request: RegisterRequest,
        response: Response,
        context: RequestContext = Depends(context_dependency),
    ):
        if not context.settings().allow_registration:
            return error_response(status.HTTP_403_FORBIDDEN, "registration is currently disabled")

        user = database.create_user(request.username, request.email, request.password)
        token = context.sign_in(user)
        logger.info("Registered user %s", user.id)
        _issue_session_cookie(response, token)
        return _user_to_view(user)

    @router.post("/login", response_model=UserView)
    async def login(
        request: LoginRequest,
        response: Response,
        context: RequestContext = Depends(context_dependency),
    ):
        user = database.authenticate_user(request.username, request.password)
        if user is None:
            logger.warning("Failed login attempt for %s", request.username)
            return error_response(status.HTTP_401_UNAUTHORIZED, "invalid username or password")

        token = context.sign_in(user)
        logger.info("User %s signed in (%s active sessions)", user.id, session_manager.active_count())
        _issue_session_cookie(response, token)
        return _user_to_view(user)

    @router.post("/logout")
    async def logout(response: Response, context: RequestContext = Depends(context_dependency)) -> Dict[str, str]:
        user = context.current_user()
        context.sign_out()
        if user is not None:
            logger.info("User %s signed out", user.id)
        _clear_session_cookie(response)
        return {"message": "logged out"}

    @router.get("/me", response_model=UserView)
    async def me(user: User = Depends(current_user)) -> UserView:
        return _user_to_view(user)

    @router.put("/me/email", response_model=UserView)
    async def change_email(request: EmailUpdateRequest, user: User = Depends(current_user)) -> UserView:
        updated = database.update_user_email(user.id, request.email)
        return _user_to_view(updated)

    @router.put("/me/password")
    async def change_password(
        request: PasswordUpdateRequest,
        context: RequestContext = Depends(context_dependency),
    ) -> Dict[str, str]:
        user = context.require_user()
        if not database.verify_user_password(user.id, request.current_password):
            raise AccountError("current password is incorrect")

        database.set_user_password(user.id, request.new_password)
        revoked = session_manager.destroy_user(user.id, keep=context.token)
        logger.info("User %s changed their password (%s other sessions revoked)", user.id, revoked)
        return {"message": "password updated"}

    app.include_router(router)


def create_app(
    *,
    database: Database | None = None,
    settings: Settings | None = None,
    session_manager: SessionManager | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the logbook service."""

    app_settings = settings or load_settings()
    db = database or Database(app_settings.database_path)
    db.initialize()

    if not app_settings.secure_cookies:
        logger.warning(
            "Session cookies are not marked as secure. Only disable secure cookies for"
            " local development."
        )

    sessions = session_manager or SessionManager(ttl=app_settings.session_ttl)

    app = FastAPI(
        title="Logbook API",
        version="0.1.0",
        description="Personal activity logs with evolvable typed fields.",
    )
    app.state.database = db
    app.state.settings = app_settings
    app.state.session_manager = sessions

    install_error_handlers(app)

    context_dependency = _build_context_dependency(db, app_settings, sessions)
    current_user = _build_auth_dependency(context_dependency)

    register_account_routes(
        app,
        db,
        session_manager=sessions,
        context_dependency=context_dependency,
        current_user=current_user,
        secure_cookies=app_settings.secure_cookies,
    )
    register_log_routes(app, db, current_user=current_user)

    return app


__all__ = ["create_app"]

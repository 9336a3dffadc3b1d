"""HTTP API exposing the developer directory."""

from __future__ import annotations

import logging
from datetime import date, datetime
from functools import partial
from typing import Any, Dict, List, Optional

import anyio
from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .config import Settings, load_settings
from .errors import DirectoryError, InvalidParameter, ValidationError
from .models import Developer, DeveloperDraft, DeveloperPatch, Role, User
from .query import DeveloperQuery, run_query
from .security import AuthGate, BearerAuth, Credential, UserIdentity, hash_password
from .store import DeveloperStore

logger = logging.getLogger("devdirectory.service")

_DEFAULT_ADMIN_PASSWORD = "changeme"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DeveloperCreateRequest(_CamelModel):
    name: str = Field(..., min_length=2)
    role: Role
    tech_stack: List[str] = Field(..., alias="techStack", min_length=1)
    experience: int = Field(..., ge=0, strict=True)
    about: Optional[str] = None
    joining_date: Optional[date] = Field(default=None, alias="joiningDate")


class DeveloperUpdateRequest(_CamelModel):
    name: Optional[str] = Field(default=None, min_length=2)
    role: Optional[Role] = None
    tech_stack: Optional[List[str]] = Field(default=None, alias="techStack", min_length=1)
    experience: Optional[int] = Field(default=None, ge=0, strict=True)
    about: Optional[str] = None
    joining_date: Optional[date] = Field(default=None, alias="joiningDate")


class DeveloperResponse(_CamelModel):
    id: str
    name: str
    role: Role
    tech_stack: List[str] = Field(..., alias="techStack")
    experience: int
    about: Optional[str] = None
    joining_date: Optional[date] = Field(default=None, alias="joiningDate")
    created_by: Optional[str] = Field(default=None, alias="createdBy")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class DeveloperListResponse(_CamelModel):
    data: List[DeveloperResponse]
    total: int
    page: int
    total_pages: int = Field(..., alias="totalPages")


class SignupRequest(_CamelModel):
    name: str
    email: str
    password: str


class LoginRequest(_CamelModel):
    email: str
    password: str


class UserResponse(_CamelModel):
    id: str
    name: str
    email: str


class AuthResponse(_CamelModel):
    user: UserResponse
    token: str
    expires_at: datetime = Field(..., alias="expiresAt")


def developer_to_response(developer: Developer) -> DeveloperResponse:
    return DeveloperResponse(
        id=developer.id,
        name=developer.name,
        role=developer.role,
        tech_stack=list(developer.tech_stack),
        experience=developer.experience,
        about=developer.about,
        joining_date=developer.joining_date,
        created_by=developer.created_by,
        created_at=developer.created_at,
        updated_at=developer.updated_at,
    )


def auth_to_response(user: User, credential: Credential) -> AuthResponse:
    return AuthResponse(
        user=UserResponse(id=user.id, name=user.name, email=user.email),
        token=credential.token,
        expires_at=credential.expires_at,
    )


def register_error_handlers(app: FastAPI) -> None:
    """Translate typed failures into ``{"error": {...}}`` bodies."""

    @app.exception_handler(DirectoryError)
    async def directory_error_handler(request: Request, exc: DirectoryError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error("Internal failure on %s: %s", request.url.path, exc.message, exc_info=exc)
            body = DirectoryError().to_response()
        else:
            body = exc.to_response()
        headers = {"WWW-Authenticate": "Bearer"} if exc.http_status == status.HTTP_401_UNAUTHORIZED else None
        return JSONResponse(status_code=exc.http_status, content=body, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        details = [
            {
                "field": ".".join(str(part) for part in error["loc"][1:]) or str(error["loc"][0]),
                "message": error["msg"],
            }
            for error in errors
        ]
        if errors and all(error["loc"] and error["loc"][0] == "query" for error in errors):
            failure: DirectoryError = InvalidParameter(details[0]["message"], details=details)
        else:
            failure = ValidationError(details[0]["message"] if details else None, details=details)
        logger.warning("Rejected request to %s: %s", request.url.path, details)
        return JSONResponse(status_code=failure.http_status, content=failure.to_response())

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=DirectoryError().to_response(),
        )


def register_api_routes(
    app: FastAPI,
    store: DeveloperStore,
    gate: AuthGate,
    *,
    default_page_size: int,
) -> None:
    """Expose the JSON API endpoints on the provided FastAPI application."""

    current_user = BearerAuth(gate)

    @app.get("/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/auth/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
    async def signup(payload: SignupRequest) -> AuthResponse:
        user, credential = await anyio.to_thread.run_sync(
            partial(gate.signup, payload.name, payload.email, payload.password)
        )
        return auth_to_response(user, credential)

    @app.post("/auth/login", response_model=AuthResponse)
    async def login(payload: LoginRequest) -> AuthResponse:
        user, credential = await anyio.to_thread.run_sync(partial(gate.login, payload.email, payload.password))
        return auth_to_response(user, credential)

    @app.get("/auth/me", response_model=UserResponse)
    async def read_current_user(identity: UserIdentity = Depends(current_user)) -> UserResponse:
        return UserResponse(**identity.to_dict())

    @app.get("/developers", response_model=DeveloperListResponse)
    async def list_developers(
        role: Optional[str] = None,
        tech: Optional[str] = None,
        search: Optional[str] = None,
        sort: Optional[str] = None,
        page: int = 1,
        page_size: Optional[int] = Query(default=None, alias="pageSize"),
        identity: UserIdentity = Depends(current_user),
    ) -> DeveloperListResponse:
        query = DeveloperQuery.from_params(
            role=role,
            tech=tech,
            search=search,
            sort=sort,
            page=page,
            page_size=default_page_size if page_size is None else page_size,
        )
        result = run_query(store.list_developers(), query)
        return DeveloperListResponse(
            data=[developer_to_response(developer) for developer in result.data],
            total=result.total,
            page=result.page,
            total_pages=result.total_pages,
        )

    @app.get("/developers/{developer_id}", response_model=DeveloperResponse)
    async def read_developer(developer_id: str, identity: UserIdentity = Depends(current_user)) -> DeveloperResponse:
        return developer_to_response(store.get_developer(developer_id))

    @app.post("/developers", response_model=DeveloperResponse, status_code=status.HTTP_201_CREATED)
    async def create_developer(
        payload: DeveloperCreateRequest,
        identity: UserIdentity = Depends(current_user),
    ) -> DeveloperResponse:
        draft = DeveloperDraft(
            name=payload.name,
            role=payload.role,
            tech_stack=tuple(payload.tech_stack),
            experience=payload.experience,
            about=payload.about,
            joining_date=payload.joining_date,
            created_by=identity.id,
        )
        developer = await anyio.to_thread.run_sync(store.insert_developer, draft)
        return developer_to_response(developer)

    async def _apply_update(developer_id: str, payload: DeveloperUpdateRequest) -> DeveloperResponse:
        values: Dict[str, Any] = {
            name: getattr(payload, name) for name in payload.model_fields_set
        }
        if "tech_stack" in values and values["tech_stack"] is not None:
            values["tech_stack"] = tuple(values["tech_stack"])
        developer = await anyio.to_thread.run_sync(store.replace_developer, developer_id, DeveloperPatch(values))
        return developer_to_response(developer)

    @app.put("/developers/{developer_id}", response_model=DeveloperResponse)
    async def replace_developer(
        developer_id: str,
        payload: DeveloperUpdateRequest,
        identity: UserIdentity = Depends(current_user),
    ) -> DeveloperResponse:
        return await _apply_update(developer_id, payload)

    @app.patch("/developers/{developer_id}", response_model=DeveloperResponse)
    async def patch_developer(
        developer_id: str,
        payload: DeveloperUpdateRequest,
        identity: UserIdentity = Depends(current_user),
    ) -> DeveloperResponse:
        return await _apply_update(developer_id, payload)

    @app.delete("/developers/{developer_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_developer(developer_id: str, identity: UserIdentity = Depends(current_user)) -> Response:
        await anyio.to_thread.run_sync(store.delete_developer, developer_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


def build_store(settings: Settings) -> DeveloperStore:
    """Create and load the store described by ``settings``."""

    store = DeveloperStore(
        settings.data_path,
        admin_name=settings.admin_name,
        admin_email=settings.admin_email,
        admin_password_hash=hash_password(settings.admin_password),
    )
    if not settings.data_path.exists() and settings.admin_password == _DEFAULT_ADMIN_PASSWORD:
        logger.warning(
            "Seeding the administrator account with the default password. Set"
            " DEVDIR_ADMIN_PASSWORD before exposing the service."
        )
    store.initialize()
    return store


def create_app(
    *,
    settings: Settings | None = None,
    store: DeveloperStore | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the developer directory."""

    app_settings = settings or load_settings()
    app_store = store or build_store(app_settings)
    gate = AuthGate(app_store, app_settings.token_secret, ttl=app_settings.token_ttl)

    app = FastAPI(
        title="Developer Directory API",
        version="1.0.0",
        description="Browse, filter and manage developer profiles.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = app_settings
    app.state.store = app_store
    app.state.auth_gate = gate

    register_error_handlers(app)
    register_api_routes(app, app_store, gate, default_page_size=app_settings.default_page_size)
    return app


__all__ = ["build_store", "create_app", "register_api_routes", "register_error_handlers"]

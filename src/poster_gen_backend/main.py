from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import Principal, RevokedTokenRepository, TokenService, UserRepository, UserService
from .catalog import PosterCatalog
from .configuration import configure_logging, load_settings
from .database import Database
from .errors import AppError, AuthError
from .middleware import RequestIDMiddleware, SecurityHeadersMiddleware
from .models import (
    AssetCreate,
    AssetView,
    LayoutCreate,
    LayoutView,
    LoginRequest,
    LogoView,
    OrderCreate,
    OrderView,
    PosterInput,
    PosterView,
    RegisterRequest,
    TemplateCreate,
    TemplateUpdate,
    TemplateView,
    TokenResponse,
    UserView,
)
from .poster_service import PosterService
from .rasterizer import BrowserRasterizer, PageSetup
from .renderer import TemplateRenderer
from .repositories import PosterRepository
from .utils import ensure_directory

settings = load_settings()
configure_logging(settings.app.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app.name, version=settings.app.version)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.app.allowed_origins,
    allow_credentials="*" not in settings.app.allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

database = Database(settings.database.path)
catalog = PosterCatalog(database)

rendering = settings.rendering
poster_service = PosterService(
    template_repository=catalog.template_repository,
    asset_repository=catalog.asset_repository,
    poster_repository=PosterRepository(database),
    renderer=TemplateRenderer(settings.storage.templates_dir),
    rasterizer=BrowserRasterizer(
        output_dir=settings.storage.output_dir,
        timeout_seconds=rendering.timeout_seconds,
        settle_delay_ms=rendering.settle_delay_ms,
        page_setup=PageSetup(
            format=rendering.page_format,
            landscape=rendering.landscape,
            viewport_width=rendering.viewport_width,
            viewport_height=rendering.viewport_height,
        ),
        browser_args=rendering.browser_args,
    ),
    artifact_mode=rendering.artifact_mode,
    public_prefix=settings.storage.public_prefix,
)

token_service = TokenService(
    RevokedTokenRepository(database),
    secret=settings.auth.jwt_secret,
    algorithm=settings.auth.algorithm,
    issuer=settings.auth.issuer,
    ttl_minutes=settings.auth.access_token_ttl_minutes,
)
user_service = UserService(UserRepository(database), token_service)

# StaticFiles answers 404 for directories unless html=True, so no listings.
app.mount(
    settings.storage.public_prefix,
    StaticFiles(directory=ensure_directory(settings.storage.output_dir)),
    name="outputs",
)

bearer_scheme = HTTPBearer(auto_error=False)

_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "AUTH_ERROR",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


@app.exception_handler(AppError)
async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: Dict[str, str] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "header")]
        key = ".".join(location) or "body"
        errors.setdefault(key, error.get("msg", "Invalid value."))
    return JSONResponse(
        status_code=400,
        content={"detail": "invalid request", "code": "VALIDATION_ERROR", "errors": errors},
    )


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": _STATUS_CODES.get(exc.status_code, "HTTP_ERROR"), "errors": None},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"{request.method} {request.url.path} raised an unhandled error")
    return JSONResponse(
        status_code=500,
        content={"detail": "internal server error", "code": "INTERNAL_SERVER_ERROR", "errors": None},
    )


def get_poster_service() -> PosterService:
    return poster_service


def get_catalog() -> PosterCatalog:
    return catalog


def get_user_service() -> UserService:
    return user_service


def require_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise AuthError("missing bearer token")
    return token_service.verify(credentials.credentials)


@app.get("/healthz")
def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


# --- auth ---------------------------------------------------------------


@app.post("/auth/register", response_model=UserView, status_code=201)
def register(payload: RegisterRequest, users: UserService = Depends(get_user_service)) -> UserView:
    return users.register(payload)


@app.post("/auth/login", response_model=TokenResponse)
def login(payload: LoginRequest, users: UserService = Depends(get_user_service)) -> TokenResponse:
    return users.login(payload)


@app.post("/auth/logout")
def logout(
    principal: Principal = Depends(require_principal),
    users: UserService = Depends(get_user_service),
) -> Dict[str, str]:
    users.logout(principal)
    return {"status": "logged_out"}


@app.get("/auth/me", response_model=UserView)
def me(
    principal: Principal = Depends(require_principal),
    users: UserService = Depends(get_user_service),
) -> UserView:
    return users.get_user(principal.user_id)


# --- templates (declared before /posters/{poster_id}) -------------------


@app.get("/posters/templates", response_model=List[TemplateView])
def list_templates(poster_catalog: PosterCatalog = Depends(get_catalog)) -> List[TemplateView]:
    return poster_catalog.templates.list_active_templates()


@app.post("/posters/templates", response_model=TemplateView, status_code=201)
def create_template(
    payload: TemplateCreate,
    principal: Principal = Depends(require_principal),
    poster_catalog: PosterCatalog = Depends(get_catalog),
) -> TemplateView:
    return poster_catalog.templates.create_template(payload)


@app.get("/posters/templates/{template_id}", response_model=TemplateView)
def get_template(
    template_id: int,
    principal: Principal = Depends(require_principal),
    poster_catalog: PosterCatalog = Depends(get_catalog),
) -> TemplateView:
    return poster_catalog.templates.get_template(template_id)


@app.patch("/posters/templates/{template_id}", response_model=TemplateView)
def update_template(
    template_id: int,
    payload: TemplateUpdate,
    principal: Principal = Depends(require_principal),
    poster_catalog: PosterCatalog = Depends(get_catalog),
) -> TemplateView:
    return poster_catalog.templates.update_template(template_id, payload)


@app.delete("/posters/templates/{template_id}")
def delete_template(
    template_id: int,
    principal: Principal = Depends(require_principal),
    poster_catalog: PosterCatalog = Depends(get_catalog),
) -> Dict[str, str]:
    poster_catalog.templates.delete_template(template_id)
    return {"status": "deleted"}


# --- posters ------------------------------------------------------------


@app.post("/posters/generate", response_model=PosterView, status_code=201)
async def generate_poster(
    payload: PosterInput,
    template_id: int = Query(..., gt=0),
    service: PosterService = Depends(get_poster_service),
) -> PosterView:
    return await service.generate_poster(template_id, payload)


@app.get("/posters/{poster_id}", response_model=PosterView)
def get_poster(poster_id: int, service: PosterService = Depends(get_poster_service)) -> PosterView:
    return service.get_poster(poster_id)


@app.delete("/posters/{poster_id}")
def delete_poster(
    poster_id: int,
    principal: Principal = Depends(require_principal),
    service: PosterService = Depends(get_poster_service),
) -> Dict[str, str]:
    service.delete_poster(poster_id)
    return {"status": "deleted"}


# --- layouts, assets, logos ----------------------------------------------


@app.post("/layouts", response_model=LayoutView, status_code=201)
def create_layout(
    payload: LayoutCreate,
    principal: Principal = Depends(require_principal),
    poster_catalog: PosterCatalog = Depends(get_catalog),
) -> LayoutView:
    return poster_catalog.layouts.create_layout(payload)


@app.get("/layouts", response_model=List[LayoutView])
def list_layouts(
    principal: Principal = Depends(require_principal),
    poster_catalog: PosterCatalog = Depends(get_catalog),
) -> List[LayoutView]:
    return poster_catalog.layouts.list_layouts()


@app.get("/layouts/{layout_id}", response_model=LayoutView)
def get_layout(
    layout_id: int,
    principal: Principal = Depends(require_principal),
    poster_catalog: PosterCatalog = Depends(get_catalog),
) -> LayoutView:
    return poster_catalog.layouts.get_layout(layout_id)


@app.post("/assets", response_model=AssetView, status_code=201)
def create_asset(
    payload: AssetCreate,
    principal: Principal = Depends(require_principal),
    poster_catalog: PosterCatalog = Depends(get_catalog),
) -> AssetView:
    return poster_catalog.assets.create_asset(payload)


@app.get("/assets", response_model=List[AssetView])
def list_assets(
    asset_type: Optional[str] = Query(None, alias="type"),
    principal: Principal = Depends(require_principal),
    poster_catalog: PosterCatalog = Depends(get_catalog),
) -> List[AssetView]:
    return poster_catalog.assets.list_assets(asset_type)


@app.get("/assets/{asset_id}", response_model=AssetView)
def get_asset(
    asset_id: int,
    principal: Principal = Depends(require_principal),
    poster_catalog: PosterCatalog = Depends(get_catalog),
) -> AssetView:
    return poster_catalog.assets.get_asset(asset_id)


@app.get("/logos", response_model=List[LogoView])
def list_logos(poster_catalog: PosterCatalog = Depends(get_catalog)) -> List[LogoView]:
    return poster_catalog.assets.get_logos()


# --- orders -------------------------------------------------------------


@app.post("/orders", response_model=OrderView, status_code=201)
def create_order(
    payload: OrderCreate,
    principal: Principal = Depends(require_principal),
    poster_catalog: PosterCatalog = Depends(get_catalog),
) -> OrderView:
    return poster_catalog.orders.create_order(principal.user_id, payload)


@app.get("/orders/{order_id}", response_model=OrderView)
def get_order(
    order_id: int,
    principal: Principal = Depends(require_principal),
    poster_catalog: PosterCatalog = Depends(get_catalog),
) -> OrderView:
    return poster_catalog.orders.get_order(order_id, principal.user_id, principal.role == "admin")


@app.patch("/orders/{order_id}", response_model=OrderView)
def update_order(
    order_id: int,
    payload: OrderCreate,
    principal: Principal = Depends(require_principal),
    poster_catalog: PosterCatalog = Depends(get_catalog),
) -> OrderView:
    return poster_catalog.orders.update_order(order_id, principal.user_id, payload, principal.role == "admin")


@app.delete("/orders/{order_id}")
def delete_order(
    order_id: int,
    principal: Principal = Depends(require_principal),
    poster_catalog: PosterCatalog = Depends(get_catalog),
) -> Dict[str, Any]:
    poster_catalog.orders.delete_order(order_id, principal.user_id, principal.role == "admin")
    return {"status": "deleted"}

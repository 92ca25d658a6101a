from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from spendlog import database
from spendlog.config import load_config
from spendlog.core.models import CategoryKind
from spendlog.errors import SpendlogError, ValidationError
from spendlog.schemas import CategoryPayload, TransactionPayload

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-User-Id",
}

router = APIRouter(prefix="/api")


def _db_path(request: Request) -> str:
    return request.app.state.db_path


def _request_user(
    user_id: Optional[str] = Query(default=None),
    x_user_id: Optional[str] = Header(default=None),
) -> Optional[str]:
    return user_id or x_user_id


def _require_user(request: Request, *candidates: Optional[str]) -> str:
    """Return the first non-blank user id, falling back to the configured default."""
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    default = request.app.state.default_user_id
    if default:
        return default
    raise ValidationError("user_id is required")


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

@router.get("/transactions")
def list_transactions(
    request: Request,
    year: Optional[int] = None,
    month: Optional[int] = None,
    search: Optional[str] = None,
    item_category_id: list[int] = Query(default=[]),
    user: Optional[str] = Depends(_request_user),
    db_path: str = Depends(_db_path),
):
    return database.list_transactions(
        db_path,
        _require_user(request, user),
        year=year,
        month=month,
        search=search,
        item_category_ids=item_category_id,
    )


@router.get("/transactions/summary")
def transactions_summary(
    request: Request,
    year: Optional[int] = None,
    month: Optional[int] = None,
    user: Optional[str] = Depends(_request_user),
    db_path: str = Depends(_db_path),
):
    return database.monthly_summary(db_path, _require_user(request, user), year=year, month=month)


@router.get("/transactions/{transaction_id}")
def get_transaction(
    request: Request,
    transaction_id: int,
    user: Optional[str] = Depends(_request_user),
    db_path: str = Depends(_db_path),
):
    return database.get_transaction(db_path, _require_user(request, user), transaction_id)


@router.post("/transactions", status_code=201)
def create_transaction(
    request: Request,
    payload: TransactionPayload,
    user: Optional[str] = Depends(_request_user),
    db_path: str = Depends(_db_path),
):
    owner = _require_user(request, payload.user_id, user)
    return database.create_transaction(db_path, owner, payload.to_transaction())


@router.put("/transactions/{transaction_id}")
def update_transaction(
    request: Request,
    transaction_id: int,
    payload: TransactionPayload,
    user: Optional[str] = Depends(_request_user),
    db_path: str = Depends(_db_path),
):
    owner = _require_user(request, payload.user_id, user)
    return database.update_transaction(db_path, owner, transaction_id, payload.to_transaction())


@router.delete("/transactions/{transaction_id}", status_code=204, response_class=Response)
def delete_transaction(
    request: Request,
    transaction_id: int,
    user: Optional[str] = Depends(_request_user),
    db_path: str = Depends(_db_path),
):
    database.delete_transaction(db_path, _require_user(request, user), transaction_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def _add_category_routes(kind: CategoryKind, path: str) -> None:
    @router.get(path, name=f"list_{kind}_categories")
    def list_categories(
        request: Request,
        user: Optional[str] = Depends(_request_user),
        db_path: str = Depends(_db_path),
    ):
        return database.list_categories(db_path, kind, _require_user(request, user))

    @router.post(path, status_code=201, name=f"create_{kind}_category")
    def create_category(
        request: Request,
        payload: CategoryPayload,
        user: Optional[str] = Depends(_request_user),
        db_path: str = Depends(_db_path),
    ):
        owner = _require_user(request, payload.user_id, user)
        return database.create_category(db_path, kind, owner, payload.name)

    @router.put(path + "/{category_id}", name=f"rename_{kind}_category")
    def rename_category(
        request: Request,
        category_id: int,
        payload: CategoryPayload,
        user: Optional[str] = Depends(_request_user),
        db_path: str = Depends(_db_path),
    ):
        owner = _require_user(request, payload.user_id, user)
        return database.rename_category(db_path, kind, owner, category_id, payload.name)

    @router.delete(
        path + "/{category_id}",
        status_code=204,
        response_class=Response,
        name=f"delete_{kind}_category",
    )
    def delete_category(
        request: Request,
        category_id: int,
        user: Optional[str] = Depends(_request_user),
        db_path: str = Depends(_db_path),
    ):
        database.delete_category(db_path, kind, _require_user(request, user), category_id)
        return Response(status_code=204)


_add_category_routes("item", "/item-categories")
_add_category_routes("payment", "/payment-categories")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

async def _spendlog_error(request: Request, exc: SpendlogError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.debug("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse({"error": str(exc)}, status_code=exc.status_code)


async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    missing = any(err.get("type") == "missing" for err in errors)
    message = "Missing required fields" if missing else "Invalid request"
    return JSONResponse(
        {"error": message, "detail": jsonable_encoder(errors)},
        status_code=400,
    )


def create_app(
    db_path: str | None = None,
    default_user_id: str | None = None,
    config: dict[str, Any] | None = None,
) -> FastAPI:
    """Build the API bound to ``db_path``.

    Arguments override the matching keys of ``config``; without a config the
    defaults plus ``SPENDLOG_*`` environment variables are used.
    """
    cfg = config if config is not None else load_config()
    app = FastAPI(title="Spendlog API")
    app.state.db_path = db_path or cfg["db_path"]
    app.state.default_user_id = default_user_id or cfg.get("default_user_id")

    database.init_db(app.state.db_path)

    @app.middleware("http")
    async def _cors(request: Request, call_next):
        if request.method == "OPTIONS":
            response = Response(status_code=204)
        else:
            response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    app.add_exception_handler(SpendlogError, _spendlog_error)
    app.add_exception_handler(RequestValidationError, _request_validation_error)
    app.include_router(router)
    return app

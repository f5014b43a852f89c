from __future__ import annotations

from dataclasses import asdict
import logging
import math
from typing import Literal

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import (
    DeleteAccountRequest,
    ExportRequest,
    LoginRequest,
    ProfileUpdateRequest,
    QuickSearchRequest,
    RegisterRequest,
    ResendVerificationRequest,
    SelectionRequest,
    TableRequest,
    VerifyRequest,
)
from core import selection as sel
from core.auth import AuthStore, ClientInfo, RegistrationRequest
from core.data import load_dashboard_data, records_frame
from core.errors import (
    AccountLockedError,
    BusinessRuleError,
    EmptySelectionError,
    FactoryLinkError,
    NotAuthenticatedError,
    ValidationError,
)
from core.export import EXPORT_FILENAME, to_csv
from core.filters import filter_options, normalize_filters
from core.table import compute_table, normalize_page_size, normalize_sort, rows_payload
from core.workspace import (
    SearchFilters,
    WorkspaceStore,
    list_quotes,
    mark_all_notifications_as_read,
    mark_notification_as_read,
    quote_status_counts,
    search_manufacturers,
)


app = FastAPI(title="FactoryLink API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.auth_store = AuthStore()
app.state.workspace = WorkspaceStore()


def get_manufacturers() -> pd.DataFrame:
    data_ctx = load_dashboard_data()
    df = data_ctx.get("manufacturers")
    return df if isinstance(df, pd.DataFrame) else records_frame([])


def get_auth_store(request: Request) -> AuthStore:
    return request.app.state.auth_store


def get_workspace(request: Request) -> WorkspaceStore:
    return request.app.state.workspace


def _client(request: Request) -> ClientInfo:
    return ClientInfo(
        ip_address=request.client.host if request.client else "unknown",
        user_agent=request.headers.get("user-agent", "unknown"),
    )


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _error(exc: FactoryLinkError, *, rule_status: int = 409) -> JSONResponse:
    content = {"error": exc.message, "type": type(exc).__name__}
    if isinstance(exc, ValidationError):
        status = 422
    elif isinstance(exc, AccountLockedError):
        status = 423
        content["remaining_minutes"] = exc.remaining_minutes
    elif isinstance(exc, BusinessRuleError):
        status = rule_status
    elif isinstance(exc, NotAuthenticatedError):
        status = 401
    else:
        status = 400
    return JSONResponse(status_code=status, content=content)


def _session(store: AuthStore) -> dict:
    return {"user": store.state.user, "is_authenticated": store.state.is_authenticated}


# ---------------- Manufacturers ----------------
@app.get("/meta/options")
def meta_options(df: pd.DataFrame = Depends(get_manufacturers)):
    try:
        return _json(filter_options(df))
    except Exception as exc:
        logger.exception("meta_options failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.post("/manufacturers/table")
def manufacturers_table(body: TableRequest, df: pd.DataFrame = Depends(get_manufacturers)):
    try:
        filters = normalize_filters(body.filters.model_dump())
        sort = normalize_sort(body.sort.model_dump())
        payload = compute_table(
            df,
            filters,
            sort,
            page=body.page,
            page_size=normalize_page_size(body.page_size),
            selection=body.selected_ids,
        )
        return _json(payload)
    except Exception as exc:
        logger.exception("manufacturers_table failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.post("/manufacturers/selection")
def manufacturers_selection(body: SelectionRequest):
    try:
        current = frozenset(body.selected_ids)
        if body.action == "toggle":
            if not body.record_id:
                return _error(ValidationError("record_id is required to toggle a row"))
            updated = sel.toggle(current, body.record_id)
        elif body.action == "toggle_visible":
            updated = sel.toggle_visible(current, body.visible_ids)
        elif body.action == "select_visible":
            updated = sel.select_visible(current, body.visible_ids)
        elif body.action == "deselect_visible":
            updated = sel.deselect_visible(current, body.visible_ids)
        else:
            updated = sel.clear()
        return _json(
            {
                "selected_ids": sorted(updated),
                "selected_count": len(updated),
                "visible_coverage": sel.coverage(updated, body.visible_ids),
            }
        )
    except Exception as exc:
        logger.exception("manufacturers_selection failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.post("/manufacturers/search")
def manufacturers_search(body: QuickSearchRequest, df: pd.DataFrame = Depends(get_manufacturers)):
    try:
        results = search_manufacturers(df, SearchFilters(**body.filters.model_dump()), body.query)
        return _json({"total": int(len(results)), "rows": rows_payload(results)})
    except Exception as exc:
        logger.exception("manufacturers_search failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.post("/manufacturers/export")
def manufacturers_export(body: ExportRequest, df: pd.DataFrame = Depends(get_manufacturers)):
    try:
        content = to_csv(df, body.selected_ids)
    except EmptySelectionError as exc:
        return _error(exc)
    except Exception as exc:
        logger.exception("manufacturers_export failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={EXPORT_FILENAME}"},
    )


# ---------------- Auth ----------------
@app.post("/auth/login")
def auth_login(body: LoginRequest, request: Request, store: AuthStore = Depends(get_auth_store)):
    try:
        store.login(body.email, body.password, client=_client(request))
        return _json(_session(store))
    except FactoryLinkError as exc:
        return _error(exc, rule_status=401)
    except Exception as exc:
        logger.exception("auth_login failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.post("/auth/logout")
def auth_logout(request: Request, store: AuthStore = Depends(get_auth_store)):
    try:
        store.logout(client=_client(request))
        return _json(_session(store))
    except Exception as exc:
        logger.exception("auth_logout failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.post("/auth/register")
def auth_register(body: RegisterRequest, request: Request, store: AuthStore = Depends(get_auth_store)):
    try:
        store.register(RegistrationRequest(**body.model_dump()), client=_client(request))
        return _json({**_session(store), "verification_sent": True}, status_code=201)
    except FactoryLinkError as exc:
        return _error(exc)
    except Exception as exc:
        logger.exception("auth_register failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.post("/auth/verify")
def auth_verify(body: VerifyRequest, store: AuthStore = Depends(get_auth_store)):
    try:
        verified = store.verify_email(body.token)
        return _json({"verified": verified}, status_code=200 if verified else 400)
    except Exception as exc:
        logger.exception("auth_verify failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.post("/auth/verify/resend")
def auth_verify_resend(body: ResendVerificationRequest, store: AuthStore = Depends(get_auth_store)):
    try:
        store.resend_email_verification(body.email)
        return _json({"verification_sent": True})
    except Exception as exc:
        logger.exception("auth_verify_resend failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/auth/lockout")
def auth_lockout(email: str = Query(...), store: AuthStore = Depends(get_auth_store)):
    try:
        return _json(asdict(store.lockout(email)))
    except Exception as exc:
        logger.exception("auth_lockout failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.patch("/auth/profile")
def auth_profile(body: ProfileUpdateRequest, store: AuthStore = Depends(get_auth_store)):
    try:
        return _json({"user": store.update_user(body.changes)})
    except FactoryLinkError as exc:
        return _error(exc)
    except Exception as exc:
        logger.exception("auth_profile failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.patch("/auth/preferences")
def auth_preferences(body: ProfileUpdateRequest, store: AuthStore = Depends(get_auth_store)):
    try:
        return _json({"user": store.update_preferences(body.changes)})
    except FactoryLinkError as exc:
        return _error(exc)
    except Exception as exc:
        logger.exception("auth_preferences failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.post("/auth/delete")
def auth_delete(body: DeleteAccountRequest, request: Request, store: AuthStore = Depends(get_auth_store)):
    try:
        record = store.delete_account(body.reason, body.confirmation, client=_client(request))
        return _json({"deleted_account_id": record.id, **_session(store)})
    except FactoryLinkError as exc:
        return _error(exc)
    except Exception as exc:
        logger.exception("auth_delete failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


# ---------------- Workspace ----------------
@app.get("/quotes")
def quotes(
    status: str = Query(default="all"),
    q: str = Query(default=""),
    sort_by: Literal["date", "price", "leadTime", "score"] = Query(default="date"),
    workspace: WorkspaceStore = Depends(get_workspace),
):
    try:
        quotes_all = workspace.state.quotes
        return _json(
            {
                "counts": quote_status_counts(quotes_all),
                "quotes": list_quotes(quotes_all, status=status, query=q, sort_by=sort_by),
            }
        )
    except Exception as exc:
        logger.exception("quotes failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/notifications")
def notifications(workspace: WorkspaceStore = Depends(get_workspace)):
    try:
        state = workspace.state
        return _json({"unread_count": state.unread_count, "notifications": state.notifications})
    except Exception as exc:
        logger.exception("notifications failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.post("/notifications/{notification_id}/read")
def notification_read(notification_id: str, workspace: WorkspaceStore = Depends(get_workspace)):
    try:
        state = workspace.apply(mark_notification_as_read, notification_id)
        return _json({"unread_count": state.unread_count})
    except Exception as exc:
        logger.exception("notification_read failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.post("/notifications/read-all")
def notifications_read_all(workspace: WorkspaceStore = Depends(get_workspace)):
    try:
        state = workspace.apply(mark_all_notifications_as_read)
        return _json({"unread_count": state.unread_count})
    except Exception as exc:
        logger.exception("notifications_read_all failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})

from __future__ import annotations

from dataclasses import asdict
import logging
import math

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from fastapi.encoders import jsonable_encoder

from api.schemas import (
    CredentialsRequest,
    FilterModel,
    SessionResponse,
    UserModel,
    VoteModel,
    VoteRequest,
    VoteResponse,
)
from api.security import create_access_token, get_current_user
from core.aggregation import buckets_to_frame
from core.auth import (
    EMAIL_IN_USE,
    MISSING_CREDENTIALS,
    USER_NOT_FOUND,
    WEAK_PASSWORD,
    WRONG_PASSWORD,
    UserIdentity,
    auth_error_message,
)
from core.backend import get_backend
from core.dashboard import compute_dashboard, compute_data_quality
from core.data import load_dashboard_data, prepare_context
from core.errors import AuthError, DataUnavailableError, VoteError
from core.filters import FilterState, normalize_filters
from core.records import DEFAULT_METRIC, normalize_metric
from core.votes import cast_vote


app = FastAPI(title="Sales Pulse API", version="0.1.0")
logger = logging.getLogger(__name__)

CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:8501"]

AUTH_ERROR_STATUS = {
    MISSING_CREDENTIALS: 422,
    WEAK_PASSWORD: 422,
    USER_NOT_FOUND: 401,
    WRONG_PASSWORD: 401,
    EMAIL_IN_USE: 409,
}

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _filters_from_model(model: FilterModel) -> FilterState:
    return normalize_filters(model.model_dump())


def _json(data: object) -> JSONResponse:
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
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
            },
        )
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/item-types")
def meta_item_types():
    try:
        data_ctx = load_dashboard_data()
        return _json({"item_types": list(data_ctx.get("item_types", []) or [])})
    except DataUnavailableError as exc:
        return _error(exc, 503)
    except Exception as exc:
        logger.exception("meta_item_types failed")
        return _error(exc)


@app.get("/meta/years")
def meta_years():
    try:
        data_ctx = load_dashboard_data()
        return _json({"years": [int(y) for y in data_ctx.get("years", []) or []]})
    except DataUnavailableError as exc:
        return _error(exc, 503)
    except Exception as exc:
        logger.exception("meta_years failed")
        return _error(exc)


@app.post("/monthly")
def monthly(filters: FilterModel, metric: str = Query(default=DEFAULT_METRIC)):
    try:
        metric = normalize_metric(metric)
        ctx = prepare_context(_filters_from_model(filters), load_dashboard_data(), metric=metric)
        return _json({"metric": metric, "months": [asdict(b) for b in ctx["buckets"]]})
    except DataUnavailableError as exc:
        return _error(exc, 503)
    except Exception as exc:
        logger.exception("monthly failed")
        return _error(exc)


@app.post("/summary")
def summary(filters: FilterModel):
    try:
        ctx = prepare_context(_filters_from_model(filters), load_dashboard_data())
        return _json(asdict(ctx["summary"]))
    except DataUnavailableError as exc:
        return _error(exc, 503)
    except Exception as exc:
        logger.exception("summary failed")
        return _error(exc)


@app.post("/dashboard")
def dashboard(
    filters: FilterModel,
    metric: str = Query(default=DEFAULT_METRIC),
    show_all: bool = Query(default=True),
):
    try:
        f = _filters_from_model(filters)
        ctx = prepare_context(f, load_dashboard_data(), metric=metric)
        return _json(compute_dashboard(f, ctx, metric=metric, show_all=show_all))
    except DataUnavailableError as exc:
        return _error(exc, 503)
    except Exception as exc:
        logger.exception("dashboard failed")
        return _error(exc)


@app.get("/data-quality")
def data_quality():
    try:
        ctx = prepare_context(None, load_dashboard_data())
        return _json(compute_data_quality(ctx))
    except DataUnavailableError as exc:
        return _error(exc, 503)
    except Exception as exc:
        logger.exception("data_quality failed")
        return _error(exc)


@app.post("/export")
def export_monthly(filters: FilterModel):
    try:
        ctx = prepare_context(_filters_from_model(filters), load_dashboard_data())
        csv_bytes = buckets_to_frame(ctx["buckets"]).to_csv(index=False).encode("utf-8")
    except DataUnavailableError as exc:
        return _error(exc, 503)
    except Exception as exc:
        logger.exception("export_monthly failed")
        return _error(exc)
    return Response(
        content=csv_bytes,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=monthly_sales.csv"},
    )


def _auth_error(exc: AuthError) -> JSONResponse:
    return JSONResponse(
        status_code=AUTH_ERROR_STATUS.get(exc.code, 400),
        content={"error": auth_error_message(exc.code), "type": type(exc).__name__, "code": exc.code},
    )


def _session(user: UserIdentity) -> JSONResponse:
    payload = SessionResponse(access_token=create_access_token(user), user=UserModel(**asdict(user)))
    return _json(payload.model_dump())


@app.post("/auth/sign-up")
def sign_up(request: CredentialsRequest):
    try:
        user = get_backend().auth_client().sign_up(request.email, request.password)
    except AuthError as exc:
        return _auth_error(exc)
    return _session(user)


@app.post("/auth/sign-in")
def sign_in(request: CredentialsRequest):
    try:
        user = get_backend().auth_client().sign_in(request.email, request.password)
    except AuthError as exc:
        return _auth_error(exc)
    return _session(user)


@app.get("/votes/me")
def get_my_vote(user: UserIdentity = Depends(get_current_user)):
    vote = get_backend().votes.get_vote(user.uid)
    payload = VoteResponse(vote=VoteModel(**asdict(vote)) if vote else None, created=False)
    return _json(payload.model_dump())


@app.post("/votes")
def post_vote(request: VoteRequest, user: UserIdentity = Depends(get_current_user)):
    try:
        vote, created = cast_vote(get_backend().votes, user, request.vote)
    except VoteError as exc:
        return _error(exc, 422)
    payload = VoteResponse(vote=VoteModel(**asdict(vote)), created=created)
    return _json(payload.model_dump())

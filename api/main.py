from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import Literal

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, File, Query, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from api.schemas import (
    AppendRowRequest,
    CaseFiltersModel,
    CellEditRequest,
    DashboardFiltersModel,
    LoginRequest,
    MilestoneRequest,
    PasteRequest,
    UpdateInfoResponse,
)
from jurimetria.auth import check_password
from jurimetria.config import get_settings
from jurimetria.data import cases_to_records, ledger_to_records
from jurimetria.errors import DatasetBusyError, JurimetriaError
from jurimetria.models import Milestone
from jurimetria.state import AppState
from jurimetria.store import DatasetRepository, make_store


settings = get_settings()
logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Jurimetria API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache()
def get_state() -> AppState:
    return AppState(DatasetRepository(make_store(get_settings().store_path)))


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


def _error(exc: Exception) -> JSONResponse:
    if isinstance(exc, DatasetBusyError):
        status = 409
    elif isinstance(exc, JurimetriaError):
        status = 400
    else:
        status = 500
    return JSONResponse(status_code=status, content={"error": str(exc), "type": type(exc).__name__})


def _milestone(m: Milestone) -> dict:
    return {"date": m.date.isoformat(), "description": m.description}


@app.post("/login")
def login(body: LoginRequest):
    try:
        ok = check_password(body.password, get_settings())
        return _json({"success": ok}, status_code=200 if ok else 401)
    except Exception as exc:
        logger.exception("login failed")
        return _error(exc)


@app.get("/meta/update-info", response_model=UpdateInfoResponse)
def update_info(state: AppState = Depends(get_state)):
    try:
        return _json(state.repository.get_update_info())
    except Exception as exc:
        logger.exception("update_info failed")
        return _error(exc)


# ---------------- Ledger ----------------
@app.post("/ledger/upload")
async def ledger_upload(file: UploadFile = File(...), state: AppState = Depends(get_state)):
    try:
        content = await file.read()
        rows = state.load_ledger_upload(content, file.filename or "")
        return _json({"row_count": len(rows), "rows": ledger_to_records(rows)})
    except Exception as exc:
        logger.exception("ledger_upload failed")
        return _error(exc)


@app.post("/ledger/paste")
def ledger_paste(body: PasteRequest, state: AppState = Depends(get_state)):
    try:
        rows = state.load_ledger_paste(body.text)
        return _json({"row_count": len(rows), "rows": ledger_to_records(rows)})
    except Exception as exc:
        logger.exception("ledger_paste failed")
        return _error(exc)


@app.patch("/ledger/rows/{index}")
def ledger_edit_cell(index: int, body: CellEditRequest, state: AppState = Depends(get_state)):
    try:
        state.edit_cell(index, body.column, body.value)
        return _json({"rows": ledger_to_records(state.ledger)})
    except Exception as exc:
        logger.exception("ledger_edit_cell failed")
        return _error(exc)


@app.post("/ledger/rows")
def ledger_append_row(body: AppendRowRequest, state: AppState = Depends(get_state)):
    try:
        row = state.append_row(body.values)
        return _json({"period_label": row.period_label, "rows": ledger_to_records(state.ledger)})
    except Exception as exc:
        logger.exception("ledger_append_row failed")
        return _error(exc)


@app.put("/ledger/colors/{metric}")
def ledger_set_color(metric: str, color: str = Query(...), state: AppState = Depends(get_state)):
    try:
        state.set_metric_color(metric, color)
        return _json({"colors": state.colors})
    except Exception as exc:
        logger.exception("ledger_set_color failed")
        return _error(exc)


@app.post("/ledger/save")
def ledger_save(state: AppState = Depends(get_state)):
    try:
        result = state.save_ledger()
        return _json(result, status_code=200 if result.get("success") else 500)
    except Exception as exc:
        logger.exception("ledger_save failed")
        return _error(exc)


@app.post("/ledger/load")
def ledger_load(state: AppState = Depends(get_state)):
    try:
        rows = state.load_ledger_from_store()
        return _json({"row_count": len(rows), "rows": ledger_to_records(rows)})
    except Exception as exc:
        logger.exception("ledger_load failed")
        return _error(exc)


@app.post("/ledger/report")
def ledger_report(filters: DashboardFiltersModel, state: AppState = Depends(get_state)):
    try:
        return _json(state.ledger_report(filters.model_dump()))
    except Exception as exc:
        logger.exception("ledger_report failed")
        return _error(exc)


@app.post("/ledger/export")
def ledger_export(filters: DashboardFiltersModel, state: AppState = Depends(get_state)):
    try:
        report = state.export_report(filters.model_dump())
        return HTMLResponse(
            content=report["html"],
            headers={"Content-Disposition": f'attachment; filename="{report["filename"]}"'},
        )
    except Exception as exc:
        logger.exception("ledger_export failed")
        return _error(exc)


# ---------------- Cases ----------------
@app.post("/cases/upload")
async def cases_upload(file: UploadFile = File(...), state: AppState = Depends(get_state)):
    try:
        content = await file.read()
        cases = state.load_cases_upload(content, file.filename or "")
        return _json({"case_count": len(cases), "cases": cases_to_records(cases)})
    except Exception as exc:
        logger.exception("cases_upload failed")
        return _error(exc)


@app.post("/cases/save")
def cases_save(state: AppState = Depends(get_state)):
    try:
        result = state.save_cases()
        return _json(result, status_code=200 if result.get("success") else 500)
    except Exception as exc:
        logger.exception("cases_save failed")
        return _error(exc)


@app.post("/cases/load")
def cases_load(state: AppState = Depends(get_state)):
    try:
        cases = state.load_cases_from_store()
        return _json({"case_count": len(cases), "cases": cases_to_records(cases)})
    except Exception as exc:
        logger.exception("cases_load failed")
        return _error(exc)


@app.post("/cases/report")
def cases_report(
    filters: CaseFiltersModel,
    severity: Literal["All", "critical", "high", "medium", "low"] = Query(default="All"),
    q: str = Query(default=""),
    state: AppState = Depends(get_state),
):
    try:
        return _json(state.case_report(filters.model_dump(), severity=severity, q=q))
    except Exception as exc:
        logger.exception("cases_report failed")
        return _error(exc)


# ---------------- Milestones ----------------
@app.get("/milestones")
def milestones_list(state: AppState = Depends(get_state)):
    return _json({"milestones": [_milestone(m) for m in state.milestones]})


@app.post("/milestones")
def milestones_add(body: MilestoneRequest, state: AppState = Depends(get_state)):
    try:
        state.add_milestone(body.date, body.description)
        return _json({"milestones": [_milestone(m) for m in state.milestones]})
    except Exception as exc:
        logger.exception("milestones_add failed")
        return _error(exc)


@app.delete("/milestones/{index}")
def milestones_delete(index: int, state: AppState = Depends(get_state)):
    try:
        state.delete_milestone(index)
        return _json({"milestones": [_milestone(m) for m in state.milestones]})
    except Exception as exc:
        logger.exception("milestones_delete failed")
        return _error(exc)

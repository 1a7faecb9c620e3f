from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from jurimetria.config import DEFAULT_SELECTED_METRICS, DEFAULT_TOP_N
from jurimetria.filters import DEFAULT_PRESET


class DashboardFiltersModel(BaseModel):
    preset: Optional[str] = DEFAULT_PRESET
    start: Optional[str] = None
    end: Optional[str] = None
    selected_metrics: List[str] = Field(default_factory=lambda: list(DEFAULT_SELECTED_METRICS))
    top_n: int = DEFAULT_TOP_N


class CaseFiltersModel(DashboardFiltersModel):
    preset: Optional[str] = None


class LoginRequest(BaseModel):
    password: str = ""


class PasteRequest(BaseModel):
    text: str


class CellEditRequest(BaseModel):
    column: str
    value: Any = None


class AppendRowRequest(BaseModel):
    values: Dict[str, Any] = Field(default_factory=dict)


class MilestoneRequest(BaseModel):
    date: str
    description: str


class UpdateInfoResponse(BaseModel):
    timestamp: Optional[str] = None
    period: Optional[str] = None

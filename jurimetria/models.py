from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, Optional, Tuple


class Complexity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class DurationBucket(str, Enum):
    FAST = "Fast(≤3mo)"
    NORMAL = "Normal(3mo–1y)"
    SLOW = "Slow(1–2y)"
    VERY_SLOW = "VerySlow(>2y)"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"critical": 4, "high": 3, "medium": 2, "low": 1}[self.value]


class PerformanceTier(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    ATTENTION = "attention"
    INTERVENTION = "intervention"


@dataclass
class LedgerRow:
    """One monthly productivity record. ``period_date`` is never persisted."""

    period_label: str
    period_date: date
    metrics: Dict[str, float] = field(default_factory=dict)

    def value(self, metric: str) -> float:
        return float(self.metrics.get(metric, 0.0) or 0.0)


@dataclass(frozen=True)
class CaseCore:
    """Persisted fields of a judicial process."""

    case_id: str
    event_count: int
    procedure_type: str
    case_class: str
    subject: str
    conclusion_type: str
    days_concluded: int
    filed_date: date
    days_in_progress: int


@dataclass(frozen=True)
class CaseView:
    """A case plus fields derived from it; rebuilt on every load, never persisted."""

    core: CaseCore
    complexity: Complexity
    efficiency: float
    duration_bucket: DurationBucket
    filed_month_key: str
    filed_year: int

    @property
    def case_id(self) -> str:
        return self.core.case_id


@dataclass(frozen=True)
class Alert:
    id: str
    severity: Severity
    category: str
    case_id: str
    message: str
    value: float
    threshold: Optional[float] = None
    recommended_actions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Milestone:
    date: date
    description: str

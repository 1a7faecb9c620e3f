from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from jurimetria.config import PROCEDURE_ENFORCEMENT
from jurimetria.data import round_half_up
from jurimetria.models import Alert, CaseView, Severity


EXCESSIVE_DURATION_DAYS = 1825
OLD_CASE_DAYS = 1095
EXCESSIVE_CONCLUSION_DAYS = 120
CONCLUSION_ATTENTION_DAYS = 60
ANOMALOUS_EVENTS_PER_MONTH = 50.0
STALLED_ALIMONY_DAYS = 60
MINOR_INTEREST_DAYS = 365
LOW_ACTIVITY_DAYS = 730
LOW_ACTIVITY_EVENTS = 50
CONTESTED_DIVORCE_CLASS = "Divórcio Litigioso"
CONTESTED_DIVORCE_DAYS = 548
TWO_YEAR_WARNING_FROM = 600
TWO_YEAR_MARK = 730


@dataclass(frozen=True)
class AlertRule:
    severity: Severity
    category: str
    matches: Callable[[CaseView], bool]
    value: Callable[[CaseView], float]
    message: Callable[[CaseView], str]
    threshold: Optional[float]
    actions: Tuple[str, ...]


def _years(days: int) -> int:
    return int(round_half_up(days / 365) or 0)


def _contains(text: str, needle: str) -> bool:
    return needle.casefold() in (text or "").casefold()


def _events_per_month(case: CaseView) -> float:
    return case.core.event_count / (case.core.days_in_progress / 30)


def _is_anomalous(case: CaseView) -> bool:
    # Zero days in progress has no rate; the rule does not apply.
    if case.core.days_in_progress <= 0:
        return False
    return _events_per_month(case) > ANOMALOUS_EVENTS_PER_MONTH


def _is_minor_interest(case: CaseView) -> bool:
    return (
        _contains(case.core.case_class, "guarda")
        or _contains(case.core.subject, "visita")
        or _contains(case.core.subject, "alienação parental")
    )


RULES: List[AlertRule] = [
    AlertRule(
        severity=Severity.CRITICAL,
        category="excessive-duration",
        matches=lambda c: c.core.days_in_progress > EXCESSIVE_DURATION_DAYS,
        value=lambda c: c.core.days_in_progress,
        message=lambda c: (
            f"Processo {c.case_id} em tramitação há {_years(c.core.days_in_progress)} anos "
            f"({c.core.days_in_progress} dias)"
        ),
        threshold=EXCESSIVE_DURATION_DAYS,
        actions=(
            "Priorizar o processo na pauta da unidade",
            "Verificar pendências que impedem o julgamento",
            "Avaliar inclusão em mutirão ou meta de julgamento",
        ),
    ),
    AlertRule(
        severity=Severity.CRITICAL,
        category="excessive-conclusion",
        matches=lambda c: c.core.days_concluded > EXCESSIVE_CONCLUSION_DAYS,
        value=lambda c: c.core.days_concluded,
        message=lambda c: (
            f"Processo {c.case_id} concluso há {c.core.days_concluded} dias, "
            f"acima do limite de {EXCESSIVE_CONCLUSION_DAYS} dias"
        ),
        threshold=EXCESSIVE_CONCLUSION_DAYS,
        actions=(
            "Despachar ou sentenciar com prioridade",
            "Conferir se a conclusão está no tipo correto",
        ),
    ),
    AlertRule(
        severity=Severity.CRITICAL,
        category="anomalous-activity",
        matches=_is_anomalous,
        value=_events_per_month,
        message=lambda c: (
            f"Processo {c.case_id} com {_events_per_month(c):.1f} eventos por mês "
            f"({c.core.event_count} eventos em {c.core.days_in_progress} dias)"
        ),
        threshold=ANOMALOUS_EVENTS_PER_MONTH,
        actions=(
            "Verificar a existência de incidentes ou petições repetitivas",
            "Conferir se há erro de lançamento de eventos",
        ),
    ),
    AlertRule(
        severity=Severity.HIGH,
        category="stalled-alimony-enforcement",
        matches=lambda c: (
            c.core.procedure_type == PROCEDURE_ENFORCEMENT
            and _contains(c.core.subject, "alimentos")
            and c.core.days_concluded > STALLED_ALIMONY_DAYS
        ),
        value=lambda c: c.core.days_concluded,
        message=lambda c: (
            f"Execução de alimentos {c.case_id} conclusa há {c.core.days_concluded} dias"
        ),
        threshold=STALLED_ALIMONY_DAYS,
        actions=(
            "Priorizar a execução de alimentos (natureza alimentar)",
            "Avaliar medidas coercitivas pendentes",
        ),
    ),
    AlertRule(
        severity=Severity.HIGH,
        category="minor-interest-aging",
        matches=lambda c: _is_minor_interest(c) and c.core.days_in_progress > MINOR_INTEREST_DAYS,
        value=lambda c: c.core.days_in_progress,
        message=lambda c: (
            f"Processo {c.case_id} envolvendo interesse de menor em tramitação há "
            f"{c.core.days_in_progress} dias"
        ),
        threshold=MINOR_INTEREST_DAYS,
        actions=(
            "Verificar estudo social ou psicológico pendente",
            "Avaliar designação de audiência de conciliação",
            "Dar vista ao Ministério Público, se necessário",
        ),
    ),
    AlertRule(
        severity=Severity.HIGH,
        category="old-case",
        matches=lambda c: OLD_CASE_DAYS < c.core.days_in_progress <= EXCESSIVE_DURATION_DAYS,
        value=lambda c: c.core.days_in_progress,
        message=lambda c: (
            f"Processo {c.case_id} em tramitação há {_years(c.core.days_in_progress)} anos "
            f"({c.core.days_in_progress} dias)"
        ),
        threshold=OLD_CASE_DAYS,
        actions=(
            "Revisar o andamento e definir próximo ato",
            "Incluir no acompanhamento de processos antigos",
        ),
    ),
    AlertRule(
        severity=Severity.MEDIUM,
        category="conclusion-attention",
        matches=lambda c: CONCLUSION_ATTENTION_DAYS <= c.core.days_concluded <= EXCESSIVE_CONCLUSION_DAYS,
        value=lambda c: c.core.days_concluded,
        message=lambda c: f"Processo {c.case_id} concluso há {c.core.days_concluded} dias",
        threshold=CONCLUSION_ATTENTION_DAYS,
        actions=("Acompanhar para evitar que ultrapasse 120 dias concluso",),
    ),
    AlertRule(
        severity=Severity.MEDIUM,
        category="low-activity",
        matches=lambda c: c.core.days_in_progress > LOW_ACTIVITY_DAYS and c.core.event_count < LOW_ACTIVITY_EVENTS,
        value=lambda c: c.core.event_count,
        message=lambda c: (
            f"Processo {c.case_id} com apenas {c.core.event_count} eventos em "
            f"{c.core.days_in_progress} dias"
        ),
        threshold=LOW_ACTIVITY_EVENTS,
        actions=(
            "Verificar se o processo está parado aguardando providência",
            "Intimar as partes para dar andamento",
        ),
    ),
    AlertRule(
        severity=Severity.MEDIUM,
        category="slow-contested-divorce",
        matches=lambda c: c.core.case_class == CONTESTED_DIVORCE_CLASS and c.core.days_in_progress > CONTESTED_DIVORCE_DAYS,
        value=lambda c: c.core.days_in_progress,
        message=lambda c: f"Divórcio litigioso {c.case_id} em tramitação há {c.core.days_in_progress} dias",
        threshold=CONTESTED_DIVORCE_DAYS,
        actions=(
            "Avaliar nova tentativa de conciliação",
            "Verificar possibilidade de julgamento parcial do mérito",
        ),
    ),
    AlertRule(
        severity=Severity.LOW,
        category="approaching-two-years",
        matches=lambda c: TWO_YEAR_WARNING_FROM < c.core.days_in_progress <= TWO_YEAR_MARK,
        value=lambda c: c.core.days_in_progress,
        message=lambda c: (
            f"Processo {c.case_id} próximo de completar 2 anos ({c.core.days_in_progress} dias)"
        ),
        threshold=TWO_YEAR_MARK,
        actions=("Planejar os próximos atos para concluir antes de 2 anos",),
    ),
]


def alert_id(severity: Severity, category: str, case_id: str) -> str:
    return f"{severity.value}-{category}-{case_id}"


def evaluate_case(case: CaseView, rules: Iterable[AlertRule] = RULES) -> List[Alert]:
    alerts: List[Alert] = []
    for rule in rules:
        if not rule.matches(case):
            continue
        alerts.append(
            Alert(
                id=alert_id(rule.severity, rule.category, case.case_id),
                severity=rule.severity,
                category=rule.category,
                case_id=case.case_id,
                message=rule.message(case),
                value=float(rule.value(case)),
                threshold=rule.threshold,
                recommended_actions=rule.actions,
            )
        )
    return alerts


def evaluate_alerts(cases: Iterable[CaseView], rules: Iterable[AlertRule] = RULES) -> List[Alert]:
    """All alerts for ``cases``, most severe first; ties keep case and rule order."""
    rules = list(rules)
    alerts: List[Alert] = []
    for case in cases:
        alerts.extend(evaluate_case(case, rules))
    return sorted(alerts, key=lambda a: a.severity.rank, reverse=True)


def alert_to_dict(alert: Alert) -> Dict[str, Any]:
    payload = asdict(alert)
    payload["severity"] = alert.severity.value
    payload["recommended_actions"] = list(alert.recommended_actions)
    return payload


def severity_counts(alerts: Iterable[Alert]) -> Dict[str, int]:
    counts = {s.value: 0 for s in Severity}
    for a in alerts:
        counts[a.severity.value] += 1
    return counts

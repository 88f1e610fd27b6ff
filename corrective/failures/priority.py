from datetime import datetime, timedelta
from typing import Optional

from corrective.core.enums import AssetCriticality, Priority
from corrective.core.errors import ValidationFailed
from corrective.db import models
from corrective.failures.schemas import PriorityFactors, PriorityResult

CRITICALITY_POINTS = {
    AssetCriticality.CRITICAL: 40,
    AssetCriticality.HIGH: 30,
    AssetCriticality.MEDIUM: 20,
    AssetCriticality.LOW: 10,
}
UNSET_CRITICALITY_POINTS = 15
DOWNTIME_POINTS = 30
SAFETY_POINTS = 25
NORMAL_FAILURE_POINTS = 5
INTERMITTENT_POINTS = 3

PRIORITY_BANDS = [(60, Priority.P1), (40, Priority.P2), (20, Priority.P3)]

TIER_MESSAGES = {
    Priority.P1: "Atención urgente requerida",
    Priority.P2: "Falla de alto impacto",
    Priority.P3: "Falla estándar, programar reparación",
    Priority.P4: "Bajo impacto, atender cuando sea posible",
}


def _as_criticality(value) -> Optional[AssetCriticality]:
    if value is None or value == "":
        return None
    try:
        return AssetCriticality(value)
    except ValueError as exc:
        raise ValidationFailed(f"Criticidad invalida: {value}") from exc


def _band(score: int) -> Priority:
    for minimum, priority in PRIORITY_BANDS:
        if score >= minimum:
            return priority
    return Priority.P4


def calculate_priority(
    asset_criticality=None,
    caused_downtime: bool = False,
    is_safety_related: bool = False,
    is_intermittent: bool = False,
    is_observation: bool = False,
) -> PriorityResult:
    criticality = _as_criticality(asset_criticality)
    criticality_points = CRITICALITY_POINTS.get(criticality, UNSET_CRITICALITY_POINTS)
    downtime_points = DOWNTIME_POINTS if caused_downtime else 0
    safety_points = SAFETY_POINTS if is_safety_related else 0
    if is_observation:
        type_points = 0
    elif is_intermittent:
        type_points = INTERMITTENT_POINTS
    else:
        type_points = NORMAL_FAILURE_POINTS

    score = criticality_points + downtime_points + safety_points + type_points
    priority = _band(score)
    if is_observation and priority == Priority.P1:
        priority = Priority.P2
    # Safety is applied last so it holds even for observations.
    if is_safety_related:
        priority = Priority.P1

    reasons: list[str] = []
    if is_safety_related:
        reasons.append("Riesgo de seguridad detectado")
    if caused_downtime:
        reasons.append("Causó parada de producción")
    if criticality == AssetCriticality.CRITICAL:
        reasons.append("Equipo crítico")
    elif criticality == AssetCriticality.HIGH:
        reasons.append("Equipo de alta criticidad")
    if is_intermittent and not is_observation:
        reasons.append("Falla intermitente")
    if is_observation:
        reasons.append("Solo observación, sin falla inmediata")
    if not reasons:
        reasons.append(TIER_MESSAGES[priority])

    return PriorityResult(
        priority=priority,
        score=score,
        factors=PriorityFactors(
            criticality=criticality_points,
            downtime=downtime_points,
            safety=safety_points,
            failure_type=type_points,
        ),
        reasons=reasons,
    )


def sla_due_at(
    tenant_settings: models.CorrectiveSettings,
    priority: Priority,
    reported_at: Optional[datetime] = None,
) -> datetime:
    return (reported_at or datetime.utcnow()) + timedelta(hours=tenant_settings.sla_hours(priority))

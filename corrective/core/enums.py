from enum import Enum


class FailureStatus(str, Enum):
    REPORTED = "REPORTED"
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    RESOLVED_IMMEDIATE = "RESOLVED_IMMEDIATE"
    CANCELLED = "CANCELLED"


ACTIVE_FAILURE_STATUSES = (FailureStatus.OPEN, FailureStatus.IN_PROGRESS, FailureStatus.REPORTED)
RESOLVED_FAILURE_STATUSES = (FailureStatus.RESOLVED, FailureStatus.RESOLVED_IMMEDIATE)


class FailureCategory(str, Enum):
    MECANICA = "MECANICA"
    ELECTRICA = "ELECTRICA"
    HIDRAULICA = "HIDRAULICA"
    NEUMATICA = "NEUMATICA"
    OTRA = "OTRA"


class Priority(str, Enum):
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"


class AssetCriticality(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class WorkOrderStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    WAITING = "WAITING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class WorkOrderPriority(str, Enum):
    URGENT = "URGENT"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


WORK_ORDER_PRIORITY_BY_PRIORITY = {
    Priority.P1: WorkOrderPriority.URGENT,
    Priority.P2: WorkOrderPriority.HIGH,
    Priority.P3: WorkOrderPriority.MEDIUM,
    Priority.P4: WorkOrderPriority.LOW,
}


class DowntimeCategory(str, Enum):
    UNPLANNED = "UNPLANNED"
    PLANNED = "PLANNED"
    EXTERNAL = "EXTERNAL"


class DowntimeState(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


DOWNTIME_TRANSITIONS = {
    DowntimeState.OPEN: {DowntimeState.CLOSED},
    DowntimeState.CLOSED: set(),
}


class QAReason(str, Enum):
    SAFETY = "SAFETY"
    HIGH_PRIORITY = "HIGH_PRIORITY"
    HIGH_CRITICALITY = "HIGH_CRITICALITY"
    HIGH_DOWNTIME = "HIGH_DOWNTIME"
    RECURRENCE = "RECURRENCE"


class EvidenceLevel(str, Enum):
    OPTIONAL = "OPTIONAL"
    BASIC = "BASIC"
    STANDARD = "STANDARD"
    COMPLETE = "COMPLETE"


class QAStatus(str, Enum):
    NOT_REQUIRED = "NOT_REQUIRED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


QA_TRANSITIONS = {
    QAStatus.NOT_REQUIRED: {QAStatus.PENDING},
    QAStatus.PENDING: {QAStatus.APPROVED, QAStatus.REJECTED},
    QAStatus.REJECTED: {QAStatus.PENDING},
    QAStatus.APPROVED: set(),
}


class SolutionOutcome(str, Enum):
    WORKED = "FUNCIONÓ"
    PARTIAL = "PARCIAL"
    FAILED = "NO_FUNCIONÓ"


class FixType(str, Enum):
    PARCHE = "PARCHE"
    DEFINITIVA = "DEFINITIVA"


def can_transition(table: dict, current, target) -> bool:
    return target in table.get(current, set())

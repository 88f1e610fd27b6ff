from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from corrective.core.enums import AssetCriticality, FailureStatus, SolutionOutcome, WorkOrderStatus
from corrective.db import models

TENANT_ID = 1
USER_ID = 7


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = SessionLocal()
    yield db
    db.close()


@pytest.fixture()
def notifier():
    return MagicMock()


@pytest.fixture()
def asset(db_session):
    row = models.Asset(tenant_id=TENANT_ID, name="Prensa 3", sector_id=4, criticality=AssetCriticality.HIGH)
    db_session.add(row)
    db_session.commit()
    return row


def make_occurrence(db, asset, title, **kwargs):
    values = {
        "tenant_id": asset.tenant_id,
        "asset_id": asset.id,
        "title": title,
        "reported_by": USER_ID,
        "reported_at": datetime.utcnow(),
        "status": FailureStatus.OPEN,
    }
    values.update(kwargs)
    row = models.FailureOccurrence(**values)
    db.add(row)
    db.commit()
    return row


def make_work_order(db, asset, **kwargs):
    values = {
        "tenant_id": asset.tenant_id,
        "asset_id": asset.id,
        "title": "Solucionar — Falla",
        "status": WorkOrderStatus.PENDING,
    }
    values.update(kwargs)
    row = models.WorkOrder(**values)
    db.add(row)
    db.commit()
    return row


def make_solution(db, occurrence, diagnosis, solution, effectiveness=4, days_ago=1, **kwargs):
    values = {
        "tenant_id": occurrence.tenant_id,
        "failure_occurrence_id": occurrence.id,
        "diagnosis": diagnosis,
        "solution": solution,
        "outcome": SolutionOutcome.WORKED,
        "effectiveness": effectiveness,
        "performed_by_id": USER_ID,
        "performed_at": datetime.utcnow() - timedelta(days=days_ago),
    }
    values.update(kwargs)
    row = models.SolutionApplied(**values)
    db.add(row)
    db.commit()
    return row

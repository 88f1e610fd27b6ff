import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from corrective.core.context import get_tenant_id
from corrective.core.errors import CorrectiveError
from corrective.core.http import internal_error, to_http
from corrective.db.session import get_db
from corrective.settings.schemas import CorrectiveSettingsResponse, CorrectiveSettingsUpdate
from corrective.settings.service import read_settings, update_settings

logger = logging.getLogger("corrective.settings")

router = APIRouter(tags=["Settings"])


@router.get("/corrective-settings")
def read_tenant_settings(tenant_id: int = Depends(get_tenant_id), db: Session = Depends(get_db)):
    try:
        return CorrectiveSettingsResponse.model_validate(read_settings(db, tenant_id))
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.patch("/corrective-settings")
def patch_settings(
    payload: CorrectiveSettingsUpdate,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        row = update_settings(db, tenant_id, payload.model_dump(exclude_unset=True))
        logger.info("settings updated tenant_id=%s fields=%s", tenant_id, sorted(payload.model_fields_set))
        return CorrectiveSettingsResponse.model_validate(row)
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)

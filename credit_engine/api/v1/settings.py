"""GET/PUT /v1/settings/{group} - business settings (approvals, credit, scoring)"""

from typing import Any, Dict
from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session

from credit_engine.api.v1.schemas import SettingsResponse
from credit_engine.infrastructure.database.config_store import ConfigurationStore
from credit_engine.infrastructure.database.session import get_db, unit_of_work

router = APIRouter()


@router.get("/settings/{group}", response_model=SettingsResponse)
def get_settings(group: str, db: Session = Depends(get_db)):
    try:
        values = ConfigurationStore(db).get_group(group)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown settings group: {group}")
    return SettingsResponse(group=group, values=values)


@router.put("/settings/{group}", response_model=SettingsResponse)
def update_settings(group: str, values: Dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    """
    Update some keys of a group.

    Changes apply to the next operation (no restart). Unknown keys and
    invalid band tables are refused with 422 and nothing is written.
    """
    store = ConfigurationStore(db)
    try:
        store.get_group(group)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown settings group: {group}")

    try:
        with unit_of_work(db):
            merged = store.update_group(group, values)
    except KeyError as e:
        raise HTTPException(status_code=422, detail=str(e.args[0]))
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=422, detail=str(e))

    return SettingsResponse(group=group, values=merged)

# checkin/api/v1/endpoints/site_config.py
from typing import Union

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from checkin.api.dependencies import get_config_store
from checkin.services.config_service import SiteConfigStore

router = APIRouter(prefix="/sites/{site_id}/config", tags=["site-config"])


class ConfigValue(BaseModel):
    value: Union[bool, int, str]


@router.get("/{config_key}")
def read_config(
        site_id: int,
        config_key: str,
        store: SiteConfigStore = Depends(get_config_store)
):
    value = store.get(site_id, config_key)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No value for '{config_key}' at site {site_id}"
        )
    return {"site_id": site_id, "config_key": config_key, "value": value}


@router.put("/{config_key}")
def write_config(
        site_id: int,
        config_key: str,
        payload: ConfigValue,
        store: SiteConfigStore = Depends(get_config_store)
):
    """Update an existing setting; settings are never created here"""
    if not store.set(site_id, config_key, payload.value):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Setting '{config_key}' was not updated for site {site_id}"
        )
    return {"site_id": site_id, "config_key": config_key, "value": store.get(site_id, config_key)}

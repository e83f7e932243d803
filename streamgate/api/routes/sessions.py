"""
Device session routes, called by the login and logout flows.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from streamgate.api.dependencies import get_current_account_id, get_session_limiter
from streamgate.sessions.limiter import DeviceSessionLimiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


class DeviceSessionResponse(BaseModel):
    connected_device_count: int
    max_devices: int


@router.post("/acquire", response_model=DeviceSessionResponse)
def acquire_session(
    account_id: str = Depends(get_current_account_id),
    limiter: DeviceSessionLimiter = Depends(get_session_limiter),
):
    """Take a device slot. 403 DEVICE_LIMIT_REACHED when all slots are in use."""
    count = limiter.try_acquire(account_id)
    return DeviceSessionResponse(connected_device_count=count, max_devices=limiter.max_devices)


@router.post("/release", response_model=DeviceSessionResponse)
def release_session(
    account_id: str = Depends(get_current_account_id),
    limiter: DeviceSessionLimiter = Depends(get_session_limiter),
):
    count = limiter.release(account_id)
    return DeviceSessionResponse(connected_device_count=count, max_devices=limiter.max_devices)

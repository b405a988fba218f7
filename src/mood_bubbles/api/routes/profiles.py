"""Player profile routes."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, HTTPException, Query

from mood_bubbles.api.schemas import SetUsernameRequest, UsernameAvailability
from mood_bubbles.models import Profile
from mood_bubbles.storage.repository import (
    MIN_USERNAME_LENGTH,
    ProfileRepository,
    UsernameTakenError,
    profile_from_row,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/check-username", response_model=UsernameAvailability, summary="Is a username free?")
async def check_username(username: str = Query(...)):
    name = username.strip()
    if len(name) < MIN_USERNAME_LENGTH:
        raise HTTPException(400, f"Username must be at least {MIN_USERNAME_LENGTH} characters.")
    taken = await ProfileRepository().find_by_username(name)
    return UsernameAvailability(username=name, available=taken is None)


@router.post("", response_model=Profile, summary="Set a device's username")
async def set_username(req: SetUsernameRequest):
    name = req.username.strip()
    if len(name) < MIN_USERNAME_LENGTH:
        raise HTTPException(400, f"Username must be at least {MIN_USERNAME_LENGTH} characters.")
    try:
        row = await ProfileRepository().set_username(req.device_id, name)
    except UsernameTakenError:
        raise HTTPException(409, f"Username {name!r} is already in use.") from None
    logger.info("profile.username_set", device=req.device_id, username=name)
    return profile_from_row(row)


@router.get("/{device_id}", response_model=Profile, summary="Get a device's profile")
async def get_profile(device_id: str):
    row = await ProfileRepository().get(device_id)
    if row is None:
        raise HTTPException(404, "Profile not found.")
    return profile_from_row(row)

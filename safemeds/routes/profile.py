from fastapi import APIRouter, Depends, HTTPException, status

from safemeds.core.deps import get_controller
from safemeds.core.errors import InvalidTransition
from safemeds.profiles.constants import COMMON_ALLERGIES, COMMON_CONDITIONS
from safemeds.profiles.schemas import ProfileRead, ProfileSuggestions, UserProfile
from safemeds.scans.pipeline import ScanController
from safemeds.scans.schemas import ScanStateRead

router = APIRouter()


@router.get("/", response_model=ProfileRead)
async def get_profile(controller: ScanController = Depends(get_controller)):
    """Return the current profile (defaults until one has been saved)."""
    return ProfileRead(profile=controller.profile, exists=controller.has_profile)


@router.put("/", response_model=ScanStateRead)
async def save_profile(
    payload: UserProfile,
    controller: ScanController = Depends(get_controller),
):
    """Save the profile wholesale and move on to the scanner."""
    try:
        await controller.save_profile(payload)
    except InvalidTransition:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Open the profile editor before saving",
        )
    return ScanStateRead.from_controller(controller)


@router.post("/edit", response_model=ScanStateRead)
async def edit_profile(controller: ScanController = Depends(get_controller)):
    try:
        controller.edit_profile()
    except InvalidTransition:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot open the profile editor right now",
        )
    return ScanStateRead.from_controller(controller)


@router.get("/suggestions", response_model=ProfileSuggestions)
async def get_suggestions():
    return ProfileSuggestions(conditions=COMMON_CONDITIONS, allergies=COMMON_ALLERGIES)

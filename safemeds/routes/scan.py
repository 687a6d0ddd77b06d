from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from safemeds.core.deps import get_controller
from safemeds.core.errors import InvalidImageError, InvalidTransition
from safemeds.scans.pipeline import AppState, ScanController
from safemeds.scans.schemas import Base64ImageRequest, ScanStateRead
from safemeds.utils.images import ScanImage

router = APIRouter()


def ensure_ready_to_scan(controller: ScanController) -> None:
    """One scan at a time, and only from the scanner screen."""
    if controller.state == AppState.ANALYZING:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A scan is already in progress")
    if controller.state != AppState.SCAN:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot start a scan from {controller.state.value}",
        )


async def run_scan(controller: ScanController, image: ScanImage) -> ScanStateRead:
    # state may have moved while the upload was being read
    ensure_ready_to_scan(controller)
    controller.capture(image)
    await controller.run()
    return ScanStateRead.from_controller(controller)


@router.get("/", response_model=ScanStateRead)
async def get_scan_state(controller: ScanController = Depends(get_controller)):
    """Current screen, progress label while analyzing, verdict or error when done."""
    return ScanStateRead.from_controller(controller)


@router.post("/capture", response_model=ScanStateRead)
async def capture_image(
    file: UploadFile = File(...),
    controller: ScanController = Depends(get_controller),
):
    """
    Runs the whole pipeline on an uploaded label photo and returns the final state.
    Label-reading and service failures come back as state ERROR, not as HTTP errors.
    """
    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="File must be an image")
    ensure_ready_to_scan(controller)

    contents = await file.read()
    try:
        image = ScanImage.from_bytes(contents)
    except InvalidImageError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return await run_scan(controller, image)


@router.post("/capture/base64", response_model=ScanStateRead)
async def capture_base64(
    payload: Base64ImageRequest,
    controller: ScanController = Depends(get_controller),
):
    ensure_ready_to_scan(controller)
    try:
        image = ScanImage.from_base64(payload.image)
    except InvalidImageError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return await run_scan(controller, image)


@router.post("/reset", response_model=ScanStateRead)
async def reset_scan(controller: ScanController = Depends(get_controller)):
    try:
        controller.reset()
    except InvalidTransition:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot reset from {controller.state.value}",
        )
    return ScanStateRead.from_controller(controller)

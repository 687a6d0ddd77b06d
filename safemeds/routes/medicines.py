from fastapi import APIRouter, Depends, HTTPException

from safemeds.core.deps import get_controller
from safemeds.core.errors import ServiceError
from safemeds.medications.schemas import LabelRead
from safemeds.scans.pipeline import ScanController

router = APIRouter()


@router.get("/label", response_model=LabelRead)
async def get_label(name: str, controller: ScanController = Depends(get_controller)):
    """
    Look a drug up in the openFDA label database by brand or generic name.
    Uses the same label service as the scan pipeline.
    """
    try:
        label = await controller.services.labels.run(name)
    except ServiceError as e:
        raise HTTPException(status_code=502, detail=e.message)
    if label is None:
        raise HTTPException(status_code=404, detail="Medicine not found")
    return LabelRead(name=name, label=label)

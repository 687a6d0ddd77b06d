from fastapi import HTTPException, Request, status

from safemeds.scans.pipeline import ScanController


def get_controller(request: Request) -> ScanController:
    """The process-wide scan controller built at startup."""
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is still starting up",
        )
    return controller

"""
FastAPI dependencies for service injection.
"""

from fastapi import HTTPException, Request, status

from ..orchestration import DeviceOrchestrator


def get_orchestrator(request: Request) -> DeviceOrchestrator:
    """
    FastAPI dependency that provides the application's orchestrator.

    Raises:
        HTTPException: 503 if the orchestrator has not been started
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Device orchestrator is not running.",
        )
    return orchestrator

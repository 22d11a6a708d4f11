"""
API Dependencies
Access to the worklist services created in the application lifespan
"""
from fastapi import HTTPException, Request, status

from calldesk.domain.services.call_actions import CallActionService
from calldesk.workers.worklist_worker import WorklistWorker


def get_worklist_worker(request: Request) -> WorklistWorker:
    """
    Worker holding the live worklist.

    Raises:
        HTTPException 503: If the application has not finished starting
    """
    worker = getattr(request.app.state, "worklist_worker", None)
    if worker is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Worklist is not ready"
        )
    return worker


def get_call_actions(request: Request) -> CallActionService:
    actions = getattr(request.app.state, "call_actions", None)
    if actions is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Worklist is not ready"
        )
    return actions

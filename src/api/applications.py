"""
Applications API - Receive enrollment application submissions
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ..schemas.applications import SubmissionResponse
from ..services.notifications import BackgroundTaskDispatcher, Notifier, get_notifier
from ..services.storage import StorageSink, get_storage_sink
from ..services.submission import WRITE_METHOD, SubmissionService

router = APIRouter()

# Every method is routed here so the service can answer 405 in the submission envelope
ROUTED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def get_submission_service(
    background_tasks: BackgroundTasks,
    storage: StorageSink = Depends(get_storage_sink),
    notifier: Notifier = Depends(get_notifier),
) -> SubmissionService:
    """Build a submission service whose notifications run as background tasks"""
    return SubmissionService(
        storage=storage,
        dispatcher=BackgroundTaskDispatcher(background_tasks, notifier),
    )


@router.api_route(
    "/submit",
    methods=ROUTED_METHODS,
    response_model=SubmissionResponse,
    responses={
        400: {"model": SubmissionResponse, "description": "Validation failed"},
        405: {"model": SubmissionResponse, "description": "Method not allowed"},
        500: {"model": SubmissionResponse, "description": "Persistence or allocation failure"},
    },
)
async def submit_application(
    request: Request,
    service: SubmissionService = Depends(get_submission_service),
) -> JSONResponse:
    """
    Submit an enrollment application

    Accepts the flat form fields as JSON (or form-encoded as a fallback).
    The server re-validates everything, assigns the reference number and
    stores the record before replying. The confirmation email is sent after
    the response.
    """
    # Non-write methods are rejected without reading the body
    body = await request.body() if request.method == WRITE_METHOD else b""

    outcome = await run_in_threadpool(service.handle_submission, request.method, body)
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)

import logging
import os
import time
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from api.backend import BackendAPI
from api.dependencies import get_backend
from api.metrics import (
    IMAGE_ANALYSES_TOTAL,
    IMAGE_CANDIDATES_TOTAL,
    TASKS_CREATED_TOTAL,
    record_request,
)
from api.responses import envelope, status_for
from llm.schemas import ImageReference
from mission_control.models import DEFAULT_PRIORITY, Priority
from mission_control.results import ErrorKind, OperationError

router = APIRouter()
logger = logging.getLogger(__name__)

# Config
MAX_IMAGE_BYTES = int(os.getenv("MAX_IMAGE_BYTES", str(10 * 1024 * 1024)))
ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}


def _validation_error(message: str):
    return envelope(
        error=OperationError(ErrorKind.VALIDATION, message), status_code=422
    )


@router.post("/todos/from-image")
async def create_todos_from_image(
    file: Optional[UploadFile] = File(None),
    image_url: Optional[str] = Form(None),
    priority: Priority = Form(DEFAULT_PRIORITY),
    due_date: Optional[date] = Form(None),
    backend: BackendAPI = Depends(get_backend),
):
    """
    Describe an uploaded image (or an image URL) and turn every sentence
    fragment of the description into a mission.
    """
    start = time.time()

    if file is not None and file.filename:
        if file.content_type not in ALLOWED_IMAGE_TYPES:
            return _validation_error(
                f"Invalid file type. Allowed types: {', '.join(sorted(ALLOWED_IMAGE_TYPES))}"
            )
        content = await file.read()
        if not content:
            return _validation_error("Uploaded image is empty")
        if len(content) > MAX_IMAGE_BYTES:
            return _validation_error(
                f"File too large. Maximum size: {MAX_IMAGE_BYTES // (1024 * 1024)} MB"
            )
        image = ImageReference.from_bytes(content, file.content_type, name=file.filename)
    elif image_url and image_url.strip():
        image = ImageReference.from_url(image_url.strip())
    else:
        return _validation_error("Please select an image file or enter an image URL")

    result = await backend.import_image(image, priority=priority, due_date=due_date)

    if result.error:
        IMAGE_ANALYSES_TOTAL.labels(status=result.error.kind.value).inc()
        record_request("/todos/from-image", "error", start)
        logger.error(f"Image import failed: {result.error.message}")
        return envelope(error=result.error, status_code=status_for(result.error))

    outcome = result.data
    IMAGE_ANALYSES_TOTAL.labels(status="ok").inc()
    IMAGE_CANDIDATES_TOTAL.labels(result="created").inc(outcome.succeeded)
    IMAGE_CANDIDATES_TOTAL.labels(result="failed").inc(len(outcome.failures))
    TASKS_CREATED_TOTAL.inc(outcome.succeeded)
    record_request("/todos/from-image", "ok" if outcome.ok else "error", start)

    if outcome.ok:
        return envelope(data=outcome.to_dict(), status_code=201)

    # Nothing was created: either no usable fragments or every insert failed
    kind = ErrorKind.STORE if outcome.failures else ErrorKind.INFERENCE_RESPONSE
    error = OperationError(kind, outcome.message)
    return envelope(data=outcome.to_dict(), error=error, status_code=status_for(error))

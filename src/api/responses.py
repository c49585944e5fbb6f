from typing import Any, Optional

from fastapi.responses import JSONResponse

from mission_control.results import ErrorKind, OperationError, OperationResult

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 422,
    ErrorKind.STORE: 502,
    ErrorKind.CONFIGURATION: 500,
    ErrorKind.INFERENCE_RESPONSE: 502,
    ErrorKind.UNAUTHORIZED_CREDENTIAL: 502,
    ErrorKind.INFERENCE: 502,
}


def status_for(error: OperationError) -> int:
    if error.is_not_found:
        return 404
    return STATUS_BY_KIND.get(error.kind, 500)


def envelope(data: Any = None, error: Optional[OperationError] = None, status_code: int = 200) -> JSONResponse:
    """Uniform {data, error} body."""
    return JSONResponse(
        status_code=status_code,
        content={"data": data, "error": error.to_dict() if error else None},
    )


def respond(result: OperationResult, data: Any = None, success_status: int = 200) -> JSONResponse:
    if result.error:
        return envelope(error=result.error, status_code=status_for(result.error))
    return envelope(data=data, status_code=success_status)

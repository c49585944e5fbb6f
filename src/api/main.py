import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api import state
from api.dependencies import LoginRedirect
from api.responses import envelope
from api.routers import auth, images, ops, tasks
from llm.image_client import ImageDescriptionClient
from mission_control.results import ErrorKind, OperationError
from storage.auth_client import AuthClient
from storage.store_client import StoreClient

# Logging configuration
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Mission Control")

app.include_router(auth.router)
app.include_router(tasks.router)
app.include_router(images.router)
app.include_router(ops.router)


def _kind_for_status(status_code: int) -> ErrorKind:
    if status_code in (401, 403):
        return ErrorKind.UNAUTHORIZED_CREDENTIAL
    if status_code < 500:
        return ErrorKind.VALIDATION
    if status_code == 502:
        return ErrorKind.STORE
    return ErrorKind.CONFIGURATION


@app.exception_handler(LoginRedirect)
async def login_redirect(request: Request, exc: LoginRedirect) -> RedirectResponse:
    logger.info(f"No session for {request.url.path}, redirecting to {exc.location}")
    return RedirectResponse(url=exc.location, status_code=303)


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())[1:])
        problems.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    message = "; ".join(problems) or "Invalid request"
    logger.info(f"Rejected request to {request.url.path}: {message}")
    return envelope(error=OperationError(ErrorKind.VALIDATION, message), status_code=422)


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error = OperationError(_kind_for_status(exc.status_code), str(exc.detail))
    response = envelope(error=error, status_code=exc.status_code)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.on_event("startup")
async def startup() -> None:
    # One set of clients per application lifetime, handed to routes via Depends
    state.store_client = StoreClient()
    state.auth_client = AuthClient()
    state.image_client = ImageDescriptionClient()
    logger.info(f"Store client ready for {state.store_client.base_url}")


@app.on_event("shutdown")
async def shutdown() -> None:
    if state.store_client is not None:
        await state.store_client.aclose()
        state.store_client = None
    if state.auth_client is not None:
        await state.auth_client.aclose()
        state.auth_client = None
    state.image_client = None
    logger.info("Clients closed")

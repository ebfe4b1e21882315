# Standard library imports
import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from FlowChat import __version__ as __main_version__
from FlowChat.config import config
from FlowChat.core.logging.utils import RequestLogger
from FlowChat.core.storage import BlobStore, FileBlobStore
from FlowChat.core.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

app = FastAPI(
    title="FlowChat blob store",
    version=__main_version__,
    description="Key-value blob store shim for FlowChat conversations and files.",
    contact={"name": "FlowChat Team"}
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "PUT", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

_request_logger = RequestLogger(logging.getLogger("FlowChat.api.access"))


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        _request_logger.log_request(
            request.method,
            request.url.path,
            response.status_code,
            time.perf_counter() - start,
            key=request.query_params.get("key") or request.query_params.get("id"),
        )
        return response


app.add_middleware(RequestLoggingMiddleware)


def configure_store(store_or_dir) -> BlobStore:
    """Attach the blob store the endpoints serve from (a BlobStore or a directory path)."""
    store = store_or_dir if isinstance(store_or_dir, BlobStore) else FileBlobStore(store_or_dir)
    app.state.store = store
    logger.info("Serving blob store from %s", getattr(store, "root", type(store).__name__))
    return store


def get_store() -> BlobStore:
    store = getattr(app.state, "store", None)
    if store is None:
        store = configure_store(config.STORAGE_DIR)
    return store


def error_response(message: str, status_code: int, **extra) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return error_response(exc.message, 400, **exc.details)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return error_response(str(exc), 500)

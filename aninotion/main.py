from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging
import json
import traceback

from aninotion.api.api import api_router
from aninotion.core.errors import AniNotionError, Unauthenticated, ValidationFailed
from aninotion.core.logging import configure_logging
from aninotion.db.database import create_tables

REDACTED = "[REDACTED]"
SENSITIVE_KEYS = {"password", "authorization", "cookie"}

logger = logging.getLogger("aninotion.requests")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    configure_logging()
    create_tables()
    yield


app = FastAPI(title="AniNotion", lifespan=lifespan)


def redact(value):
    """Mask passwords and credentials before they reach the log"""
    if isinstance(value, dict):
        return {
            k: REDACTED if str(k).lower() in SENSITIVE_KEYS else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [redact(v) for v in value]
    return value


def _decode_body(body: bytes):
    if not body:
        return None
    try:
        return redact(json.loads(body))
    except ValueError:
        return body.decode(errors="replace")


@app.exception_handler(AniNotionError)
async def aninotion_error_handler(request: Request, exc: AniNotionError):
    content = {"detail": exc.message}
    headers = None
    if isinstance(exc, ValidationFailed):
        content["fields"] = exc.fields
    if isinstance(exc, Unauthenticated):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    body = await request.body()
    request_info = {
        "url": str(request.url),
        "method": request.method,
        "headers": redact(dict(request.headers)),
        "body": _decode_body(body),
        "query_params": dict(request.query_params)
    }

    try:
        response = await call_next(request)

        if response.status_code >= 400:
            response_body = b""
            async for chunk in response.body_iterator:
                response_body += chunk

            logger.error(
                f"Request failed with status {response.status_code}\n"
                f"Request: {json.dumps(request_info, indent=2, default=str)}\n"
                f"Response: {response_body.decode(errors='replace')}\n"
            )
            headers = dict(response.headers)
            headers.pop("content-length", None)
            return JSONResponse(
                content=json.loads(response_body) if response_body else None,
                status_code=response.status_code,
                headers=headers
            )

        return response

    except Exception as e:
        logger.error(
            f"Request failed with exception\n"
            f"Request: {json.dumps(request_info, indent=2, default=str)}\n"
            f"Error: {str(e)}\n"
            f"Traceback: {traceback.format_exc()}"
        )
        raise

# register the API router
app.include_router(api_router, prefix="/api")

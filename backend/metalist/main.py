import time
import uuid
from datetime import datetime, timezone
from typing import Optional
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from . import __version__
from .client import LayerMetadataClient
from .errors import MalformedResponseError, MalformedUrlError, PortalError, TransportError
from .models import ErrorResponse, HealthResponse, MetadataResponse, WebMapMetadataResponse
from .urls import parse_service_url
from .utils.logging import setup_logging, get_logger
from .webmap import build_web_map_metadata
from .settings import (
    LOG_LEVEL,
    FRONTEND_ORIGIN,
    ARCGIS_TIMEOUT,
    PORTAL_URL,
    WEBMAP_MAX_ATTEMPTS,
)

# Setup logging
setup_logging(LOG_LEVEL)
logger = get_logger(__name__)

app = FastAPI(
    title="Layer Metadata List API",
    description="Metadata documents for ArcGIS map service layers",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

origins = [origin.strip() for origin in FRONTEND_ORIGIN.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _request_id(request: Request) -> str:
    return getattr(request.state, 'request_id', 'unknown')


def _error_response(request: Request, status_code: int, error: str, detail: Optional[str] = None) -> JSONResponse:
    request_id = _request_id(request)
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail, request_id=request_id).model_dump(),
        headers={"X-Request-ID": request_id}
    )


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Tag each request with an ID and log its outcome and duration."""
    request.state.request_id = uuid.uuid4().hex[:8]
    context = {
        'request_id': request.state.request_id,
        'method': request.method,
        'path': request.url.path,
    }
    started = time.perf_counter()
    logger.debug("Request started", extra=context)

    try:
        response = await call_next(request)
    except Exception as e:
        context['duration_ms'] = round((time.perf_counter() - started) * 1000, 2)
        logger.error("Request failed", extra={**context, 'error': str(e)}, exc_info=True)
        raise

    context['duration_ms'] = round((time.perf_counter() - started) * 1000, 2)
    logger.info("Request completed", extra={**context, 'status_code': response.status_code})
    response.headers["X-Request-ID"] = request.state.request_id
    return response

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return _error_response(request, exc.status_code, exc.detail)

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _error_response(
        request, 500, "Internal server error",
        detail=str(exc) if LOG_LEVEL == "DEBUG" else None
    )

@app.get("/healthz", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        timestamp=_utcnow().isoformat(),
        version=__version__
    )

@app.get("/api/metadata", response_model=MetadataResponse)
async def service_metadata(url: str = Query(..., min_length=1)):
    """Metadata document URLs for a map service or one of its layers."""
    try:
        reference = parse_service_url(url)
        async with LayerMetadataClient(timeout=ARCGIS_TIMEOUT) as client:
            documents = await client.get_map_service_metadata(url)
    except MalformedUrlError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except (TransportError, MalformedResponseError) as exc:
        logger.error("Metadata lookup failed for %s: %s", url, exc)
        raise HTTPException(status_code=502, detail=str(exc))

    return MetadataResponse(
        url=url,
        baseUrl=reference.base_url,
        layerId=reference.layer_id,
        documents=documents
    )

@app.get("/api/webmaps/{item_id}/metadata", response_model=WebMapMetadataResponse)
async def web_map_metadata(item_id: str):
    """Metadata documents for every operational layer of a web map."""
    try:
        layers = await build_web_map_metadata(
            item_id,
            timeout=ARCGIS_TIMEOUT,
            portal_url=PORTAL_URL,
            webmap_max_attempts=WEBMAP_MAX_ATTEMPTS
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except (TransportError, MalformedResponseError, PortalError) as exc:
        logger.error("Web map %s could not be loaded: %s", item_id, exc)
        raise HTTPException(status_code=502, detail=str(exc))

    return WebMapMetadataResponse(itemId=item_id, layers=layers)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)

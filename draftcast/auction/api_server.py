"""
FastAPI server for the live auction service.

Wires the tournament and per-tournament routers, request ids, CORS, and
the JSON error envelope: {error, code, details?, requestId}.
"""

import logging
import time
import uuid

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import config
from .actions import format_validation_errors
from .api_serializers import HealthResponse
from .api_state_endpoints import state_router
from .api_tournament_endpoints import tournament_router
from .errors import AppError, BadRequestError, InternalError, ValidationError, format_error_response
from .service import AuctionServices, check_store_health, get_services

logger = logging.getLogger(__name__)

_started_at = time.time()

# Initialize FastAPI app
app = FastAPI(
    title="Draftcast Auction API",
    description="Live multi-tenant player auctions: tournaments, rosters and the auction ledger",
    version=config.API_VERSION
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=config.CORS_ALLOW_HEADERS,
    expose_headers=config.CORS_EXPOSE_HEADERS,
    max_age=86400,
)

app.include_router(tournament_router)
app.include_router(state_router)


# ===== Request IDs =====

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Tag every request with an id (client-supplied or generated) and echo it back."""
    request_id = request.headers.get('x-request-id') or uuid.uuid4().hex[:8]
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers['X-Request-ID'] = request_id
    return response


def _request_id(request: Request):
    return getattr(request.state, 'request_id', None)


# ===== Error Handlers =====

def _error_response(request: Request, error: AppError) -> JSONResponse:
    headers = {}
    if error.code == 'RATE_LIMITED' and error.details:
        headers['Retry-After'] = str(error.details['retryAfter'])

    return JSONResponse(
        status_code=error.status_code,
        content=format_error_response(error, _request_id(request)),
        headers=headers,
    )


@app.exception_handler(AppError)
async def handle_app_error(request: Request, error: AppError):
    if error.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {error.code} {error.message}")
    else:
        logger.info(f"{request.method} {request.url.path}: {error.status_code} {error.code}")
    return _error_response(request, error)


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, error: RequestValidationError):
    if any(err.get('type') == 'json_invalid' for err in error.errors()):
        return _error_response(request, BadRequestError('Invalid JSON body', code='INVALID_JSON'))

    message = format_validation_errors(error)
    return _error_response(request, ValidationError(message or 'Invalid request'))


@app.exception_handler(Exception)
async def handle_unexpected(request: Request, error: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {error}", exc_info=True)
    return _error_response(request, InternalError())


# ===== Health =====

@app.get("/health", response_model=HealthResponse)
@app.get("/api/health", response_model=HealthResponse, include_in_schema=False)
def health_check(services: AuctionServices = Depends(get_services)):
    """
    Health check.

    Returns 503 when the store is unreachable.
    """
    store_check = check_store_health(services)
    payload = {
        'status': store_check['status'],
        'timestamp': services.clock(),
        'version': config.API_VERSION,
        'checks': {'kv': store_check},
        'uptime': int(time.time() - _started_at),
    }

    status_code = 503 if store_check['status'] == 'unhealthy' else 200
    return JSONResponse(
        status_code=status_code,
        content=HealthResponse(**payload).model_dump(),
        headers={'Cache-Control': 'no-cache, no-store, must-revalidate'},
    )

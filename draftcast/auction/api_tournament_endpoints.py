"""
Tournament management endpoints.

- GET    /api/tournaments              published tournaments
- POST   /api/tournaments              create (rate limited per IP)
- GET    /api/tournaments/{id}         tournament with lifecycle info
- PUT    /api/tournaments/{id}         update details / settings
- PATCH  /api/tournaments/{id}         publish, unpublish, getSessionToken, transition
- DELETE /api/tournaments/{id}         delete a draft tournament
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Request, Response

from .api_serializers import TournamentListResponse
from .api_state_endpoints import schedule_audit
from .errors import AppError, InternalError
from .rate_limit import tournament_rate_limit_id
from .service import AuctionServices, RequestContext, TournamentService, get_services

logger = logging.getLogger(__name__)

tournament_router = APIRouter(prefix="/api/tournaments", tags=["Tournaments"])


@tournament_router.get("", response_model=TournamentListResponse)
def list_tournaments(
    request: Request,
    response: Response,
    services: AuctionServices = Depends(get_services)
):
    """Published tournaments, newest first."""
    try:
        ctx = RequestContext.from_request(request)
        limit = services.rate_limiter.enforce(ctx.ip, 'API_READ')
        response.headers.update(limit.headers())
        response.headers['Cache-Control'] = 'public, max-age=60'
        return TournamentService(services).list_published()

    except AppError:
        raise

    except Exception as e:
        logger.error(f"Failed to list tournaments: {e}", exc_info=True)
        raise InternalError('Failed to list tournaments')


@tournament_router.post("", status_code=201)
def create_tournament(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    body: Optional[Any] = Body(None),
    services: AuctionServices = Depends(get_services)
):
    """
    Create a tournament.

    The response carries a master admin token that is shown only once.

    Raises:
        400: Invalid slug, weak PIN or malformed body
        409: Slug already taken
        429: Creation quota exceeded
    """
    try:
        ctx = RequestContext.from_request(request)
        result = TournamentService(services).create_tournament(body, ctx)
        response.headers.update(result.pop('rateLimit'))
        schedule_audit(background_tasks, services, ctx)
        return result

    except AppError:
        raise

    except Exception as e:
        logger.error(f"Failed to create tournament: {e}", exc_info=True)
        raise InternalError('Failed to create tournament')


@tournament_router.get("/{tournament_id}")
def get_tournament(
    tournament_id: str,
    request: Request,
    services: AuctionServices = Depends(get_services)
):
    try:
        ctx = RequestContext.from_request(request)
        return TournamentService(services).get_tournament(tournament_id, ctx)

    except AppError:
        raise

    except Exception as e:
        logger.error(f"Failed to load tournament {tournament_id}: {e}", exc_info=True)
        raise InternalError('Failed to load tournament')


@tournament_router.put("/{tournament_id}")
def update_tournament(
    tournament_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    body: Optional[Any] = Body(None),
    services: AuctionServices = Depends(get_services)
):
    """Update tournament details and settings (admin only)."""
    try:
        ctx = RequestContext.from_request(request)
        result = TournamentService(services).update_tournament(tournament_id, body, ctx)
        schedule_audit(background_tasks, services, ctx)
        return result

    except AppError:
        raise

    except Exception as e:
        logger.error(f"Failed to update tournament {tournament_id}: {e}", exc_info=True)
        raise InternalError('Failed to update tournament')


@tournament_router.patch("/{tournament_id}")
def patch_tournament(
    tournament_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    body: Optional[Any] = Body(None),
    services: AuctionServices = Depends(get_services)
):
    """
    Publish, unpublish, issue a session token, or change status.

    Raises:
        400: Unknown action or disallowed transition
        401: No valid credential
        403: Tournament is read-only
    """
    try:
        ctx = RequestContext.from_request(request)
        services.rate_limiter.enforce(tournament_rate_limit_id(ctx.ip, tournament_id), 'API_WRITE')
        result = TournamentService(services).patch_tournament(tournament_id, body, ctx)
        schedule_audit(background_tasks, services, ctx)
        return result

    except AppError:
        raise

    except Exception as e:
        logger.error(f"Failed to patch tournament {tournament_id}: {e}", exc_info=True)
        raise InternalError('Failed to update tournament')


@tournament_router.delete("/{tournament_id}")
def delete_tournament(
    tournament_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    body: Optional[Any] = Body(None),
    services: AuctionServices = Depends(get_services)
):
    """
    Delete a draft tournament and all of its data.

    Raises:
        400: confirmDelete missing
        403: Tournament is not a draft
    """
    try:
        ctx = RequestContext.from_request(request)
        services.rate_limiter.enforce(tournament_rate_limit_id(ctx.ip, tournament_id), 'API_WRITE')
        result = TournamentService(services).delete_tournament(tournament_id, body, ctx)
        schedule_audit(background_tasks, services, ctx)
        return result

    except AppError:
        raise

    except Exception as e:
        logger.error(f"Failed to delete tournament {tournament_id}: {e}", exc_info=True)
        raise InternalError('Failed to delete tournament')

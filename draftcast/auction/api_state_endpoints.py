"""
Per-tournament endpoints: auction state, team and player sheets, audit log.

- GET  /api/{tournament_id}/state
- POST /api/{tournament_id}/state
- GET  /api/{tournament_id}/teams
- PUT  /api/{tournament_id}/teams
- GET  /api/{tournament_id}/players
- PUT  /api/{tournament_id}/players
- GET  /api/{tournament_id}/audit
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, Request, Response

from .. import config
from .audit import AuditQuery
from .errors import AppError, InternalError
from .service import AuctionServices, RequestContext, TournamentService, get_services

logger = logging.getLogger(__name__)

state_router = APIRouter(prefix="/api/{tournament_id}", tags=["Auction"])


def schedule_audit(background_tasks: BackgroundTasks, services: AuctionServices, ctx: RequestContext) -> None:
    """Write queued audit records after the response is sent."""
    for tournament_id, event in ctx.pending_audit:
        background_tasks.add_task(services.audit.record, tournament_id, event)


# ===== Auction State =====

@state_router.get("/state")
def get_auction_state(
    tournament_id: str,
    request: Request,
    response: Response,
    services: AuctionServices = Depends(get_services)
):
    """
    Hydrated auction view.

    Published tournaments are public; unpublished ones need admin
    credentials. Authorized callers also receive the raw ledger.

    Raises:
        401: Unpublished and no valid credential
        404: Tournament missing, archived or expired
    """
    try:
        ctx = RequestContext.from_request(request)
        view = TournamentService(services).get_state_view(tournament_id, ctx)
        response.headers['Cache-Control'] = 'no-store'
        return view

    except AppError:
        raise

    except Exception as e:
        logger.error(f"Failed to load state for {tournament_id}: {e}", exc_info=True)
        raise InternalError('Failed to load auction state')


@state_router.post("/state")
def post_auction_action(
    tournament_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    body: Optional[Any] = Body(None),
    services: AuctionServices = Depends(get_services)
):
    """
    Apply one auction action (START_AUCTION, SOLD, UNSOLD, PAUSE, UNPAUSE,
    CLEAR, JOKER, CORRECT, RANDOM, RESET, VERIFY).

    Raises:
        400: Malformed body or failed precondition
        401: No valid credential
        403: Tournament is read-only
        409: Ledger version moved on
        429: Too many auth attempts
    """
    try:
        ctx = RequestContext.from_request(request)
        result = TournamentService(services).apply_action(tournament_id, body, ctx)
        schedule_audit(background_tasks, services, ctx)
        return result

    except AppError:
        raise

    except Exception as e:
        logger.error(f"Failed to apply action for {tournament_id}: {e}", exc_info=True)
        raise InternalError('Failed to update auction state')


# ===== Sheets =====

@state_router.get("/teams")
def get_teams(
    tournament_id: str,
    request: Request,
    services: AuctionServices = Depends(get_services)
):
    try:
        ctx = RequestContext.from_request(request)
        return TournamentService(services).get_teams(tournament_id, ctx)

    except AppError:
        raise

    except Exception as e:
        logger.error(f"Failed to load teams for {tournament_id}: {e}", exc_info=True)
        raise InternalError('Failed to load teams')


@state_router.put("/teams")
def put_teams(
    tournament_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    body: Optional[Any] = Body(None),
    services: AuctionServices = Depends(get_services)
):
    """Replace the whole team sheet (admin only)."""
    try:
        ctx = RequestContext.from_request(request)
        result = TournamentService(services).replace_teams(tournament_id, body, ctx)
        schedule_audit(background_tasks, services, ctx)
        return result

    except AppError:
        raise

    except Exception as e:
        logger.error(f"Failed to save teams for {tournament_id}: {e}", exc_info=True)
        raise InternalError('Failed to save teams')


@state_router.get("/players")
def get_players(
    tournament_id: str,
    request: Request,
    services: AuctionServices = Depends(get_services)
):
    try:
        ctx = RequestContext.from_request(request)
        return TournamentService(services).get_players(tournament_id, ctx)

    except AppError:
        raise

    except Exception as e:
        logger.error(f"Failed to load players for {tournament_id}: {e}", exc_info=True)
        raise InternalError('Failed to load players')


@state_router.put("/players")
def put_players(
    tournament_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    body: Optional[Any] = Body(None),
    services: AuctionServices = Depends(get_services)
):
    """Replace the whole player sheet (admin only)."""
    try:
        ctx = RequestContext.from_request(request)
        result = TournamentService(services).replace_players(tournament_id, body, ctx)
        schedule_audit(background_tasks, services, ctx)
        return result

    except AppError:
        raise

    except Exception as e:
        logger.error(f"Failed to save players for {tournament_id}: {e}", exc_info=True)
        raise InternalError('Failed to save players')


# ===== Audit =====

@state_router.get("/audit")
def get_audit_log(
    tournament_id: str,
    request: Request,
    action: Optional[str] = Query(None, description="Filter by action"),
    actor_type: Optional[str] = Query(None, alias="actorType"),
    target_type: Optional[str] = Query(None, alias="targetType"),
    start_time: Optional[int] = Query(None, alias="startTime", description="Epoch ms, inclusive"),
    end_time: Optional[int] = Query(None, alias="endTime", description="Epoch ms, inclusive"),
    limit: int = Query(config.AUDIT_DEFAULT_QUERY_LIMIT, ge=1, le=config.MAX_AUDIT_ENTRIES_PER_TOURNAMENT),
    offset: int = Query(0, ge=0),
    services: AuctionServices = Depends(get_services)
):
    """
    Audit entries, newest first (admin only).

    Raises:
        401: No valid credential
        404: Tournament missing or expired
    """
    try:
        ctx = RequestContext.from_request(request)
        query = AuditQuery(
            action=action,
            actor_type=actor_type,
            target_type=target_type,
            start_time=start_time,
            end_time=end_time,
            limit=limit,
            offset=offset,
        )
        return TournamentService(services).query_audit(tournament_id, query, ctx)

    except AppError:
        raise

    except Exception as e:
        logger.error(f"Failed to query audit log for {tournament_id}: {e}", exc_info=True)
        raise InternalError('Failed to load audit log')

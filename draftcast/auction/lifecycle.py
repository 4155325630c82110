"""
Tournament lifecycle gate.

Classifies a tournament as active, readonly or expired from its status and
expiry timestamp, enforces the status transition table, and finds
tournaments due for archival or deletion.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional

from .. import config
from .errors import BadRequestError, ForbiddenError, NotFoundError
from .models import Tournament

logger = logging.getLogger(__name__)


VALID_TRANSITIONS: Dict[str, List[str]] = {
    'draft': ['lobby', 'archived'],
    'lobby': ['active', 'draft', 'archived'],
    'active': ['completed', 'lobby', 'archived'],
    'completed': ['archived'],
    'archived': [],
}


@dataclass
class LifecycleInfo:
    """Lifecycle classification of a tournament at a point in time."""

    state: str                 # active / readonly / expired
    days_remaining: int
    expires_at: int
    can_modify: bool
    warning: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            'status': self.state,
            'daysRemaining': self.days_remaining,
            'expiresAt': self.expires_at,
            'canModify': self.can_modify,
        }
        if self.warning:
            data['warning'] = self.warning
        return data


def get_lifecycle(status: str, expires_at: int, now: int) -> LifecycleInfo:
    """
    Classify a tournament.

    Args:
        status: Tournament status
        expires_at: Expiry timestamp (epoch ms)
        now: Current time (epoch ms)

    Returns:
        LifecycleInfo
    """
    if now > expires_at:
        return LifecycleInfo(
            state='expired',
            days_remaining=0,
            expires_at=expires_at,
            can_modify=False,
            warning='Tournament has expired and will be deleted soon',
        )

    days_remaining = math.ceil((expires_at - now) / config.DAY_MS)

    if status == 'archived':
        return LifecycleInfo(
            state='readonly',
            days_remaining=days_remaining,
            expires_at=expires_at,
            can_modify=False,
            warning='Tournament is archived. No modifications allowed.',
        )

    if days_remaining <= config.READONLY_WINDOW_DAYS:
        return LifecycleInfo(
            state='readonly',
            days_remaining=days_remaining,
            expires_at=expires_at,
            can_modify=False,
            warning=f"Tournament will expire in {days_remaining} days. No modifications allowed.",
        )

    return LifecycleInfo(
        state='active',
        days_remaining=days_remaining,
        expires_at=expires_at,
        can_modify=True,
    )


def tournament_lifecycle(tournament: Tournament, now: int) -> LifecycleInfo:
    return get_lifecycle(tournament.status, tournament.expires_at, now)


def ensure_readable(tournament: Tournament, now: int) -> LifecycleInfo:
    """
    Gate for reads.

    Raises:
        NotFoundError: If the tournament has expired
    """
    info = tournament_lifecycle(tournament, now)
    if info.state == 'expired':
        raise NotFoundError('Tournament', tournament.id)
    return info


def ensure_mutable(tournament: Tournament, now: int) -> LifecycleInfo:
    """
    Gate for mutations.

    Raises:
        NotFoundError: If the tournament has expired
        ForbiddenError: If the tournament is read-only
    """
    info = ensure_readable(tournament, now)
    if not info.can_modify:
        logger.warning(f"Rejected mutation on read-only tournament {tournament.id}: {info.warning}")
        raise ForbiddenError(info.warning or 'Tournament is read-only', code='TOURNAMENT_READONLY')
    return info


# ===== Status Transitions =====

def can_transition_to(current: str, target: str) -> bool:
    return target in VALID_TRANSITIONS.get(current, [])


def transition_status(tournament: Tournament, target: str, now: int) -> Tournament:
    """
    Move a tournament to a new status in place.

    Args:
        tournament: Tournament to update
        target: New status
        now: Current time (epoch ms)

    Returns:
        The updated tournament

    Raises:
        BadRequestError: If the transition is not allowed
    """
    if not can_transition_to(tournament.status, target):
        raise BadRequestError(
            f"Cannot transition from {tournament.status} to {target}",
            code='INVALID_TRANSITION',
        )

    logger.info(f"Tournament {tournament.id}: {tournament.status} → {target}")

    tournament.status = target
    tournament.updated_at = now
    tournament.last_activity_at = now
    if target == 'completed':
        tournament.completed_at = now

    return tournament


# ===== Retention =====

def should_archive(tournament: Tournament, now: int) -> bool:
    """Completed more than a week ago and not yet archived."""
    return (
        tournament.status == 'completed'
        and tournament.completed_at is not None
        and not tournament.archived
        and now - tournament.completed_at > config.ARCHIVE_AFTER_COMPLETED_DAYS * config.DAY_MS
    )


def should_delete(tournament: Tournament, now: int) -> bool:
    """Archived past retention, idle draft, or expired."""
    if tournament.archived and tournament.archive_date is not None:
        if now - tournament.archive_date > config.TOURNAMENT_EXPIRY_DAYS * config.DAY_MS:
            return True

    if tournament.status == 'draft':
        if now - tournament.last_activity_at > config.DRAFT_IDLE_DELETE_HOURS * config.HOUR_MS:
            return True

    return now > tournament.expires_at


def tournaments_to_archive(tournaments: List[Tournament], now: int) -> List[str]:
    return [t.id for t in tournaments if should_archive(t, now)]


def tournaments_to_delete(tournaments: List[Tournament], now: int) -> List[str]:
    return [t.id for t in tournaments if should_delete(t, now)]


def extend_expiry(tournament: Tournament, additional_days: int, now: int) -> int:
    """
    Push a tournament's expiry forward.

    Args:
        tournament: Tournament to extend (updated in place)
        additional_days: Days to add
        now: Current time (epoch ms)

    Returns:
        New expiresAt

    Raises:
        BadRequestError: If the tournament is archived or days is not positive
    """
    if tournament.archived:
        raise BadRequestError('Cannot extend archived tournament')
    if additional_days <= 0:
        raise BadRequestError('additionalDays must be positive')

    tournament.expires_at += additional_days * config.DAY_MS
    tournament.updated_at = now
    logger.info(f"Extended {tournament.id} by {additional_days} days")
    return tournament.expires_at

"""
Append-only audit history per tournament.

Each entry is stored under audit:{id}:entry:{entryId} with a retention TTL,
and its id is pushed onto audit:{id}:list (newest first, capped). Recording
never raises: a failed audit write is logged and the request carries on.
"""

import logging
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .. import config
from .models import now_ms
from .storage import Clock, KeyValueStore

logger = logging.getLogger(__name__)

AUDIT_ACTIONS = (
    'TOURNAMENT_CREATED', 'TOURNAMENT_UPDATED', 'TOURNAMENT_PUBLISHED',
    'TOURNAMENT_UNPUBLISHED', 'TOURNAMENT_ARCHIVED', 'TOURNAMENT_DELETED',
    'TOURNAMENT_STATUS_CHANGED',
    'AUCTION_STARTED', 'PLAYER_SOLD', 'PLAYER_UNSOLD', 'AUCTION_PAUSED',
    'AUCTION_RESUMED', 'AUCTION_CLEARED', 'AUCTION_RESET', 'JOKER_USED',
    'PLAYER_CORRECTED',
    'ADMIN_LOGIN', 'AUTH_FAILED',
    'TEAMS_UPDATED', 'PLAYERS_UPDATED',
)
ACTOR_TYPES = ('admin', 'system', 'public', 'cron')


@dataclass
class AuditEvent:
    """An audit record before it is stamped with id and timestamp."""

    action: str
    actor_type: str = 'admin'
    actor_id: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    target_type: Optional[str] = None     # player / team / tournament / auction
    target_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AuditQuery:
    action: Optional[str] = None
    actor_type: Optional[str] = None
    target_type: Optional[str] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    limit: int = config.AUDIT_DEFAULT_QUERY_LIMIT
    offset: int = 0

    def matches(self, entry: dict) -> bool:
        if self.action and entry.get('action') != self.action:
            return False
        if self.actor_type and entry.get('actorType') != self.actor_type:
            return False
        if self.target_type and entry.get('targetType') != self.target_type:
            return False
        if self.start_time is not None and entry.get('timestamp', 0) < self.start_time:
            return False
        if self.end_time is not None and entry.get('timestamp', 0) > self.end_time:
            return False
        return True


def _entry_key(tournament_id: str, entry_id: str) -> str:
    return f"audit:{tournament_id}:entry:{entry_id}"


def _list_key(tournament_id: str) -> str:
    return f"audit:{tournament_id}:list"


class AuditLog:
    """Audit trail backed by the key-value store."""

    def __init__(self, store: KeyValueStore, clock: Optional[Clock] = None):
        self.store = store
        self._clock = clock or now_ms
        self.ttl_seconds = config.AUDIT_RETENTION_DAYS * 24 * 60 * 60

    def record(self, tournament_id: str, event: AuditEvent) -> str:
        """
        Store an audit entry.

        Args:
            tournament_id: Tournament the event belongs to
            event: What happened

        Returns:
            Entry id (returned even if the write failed)
        """
        timestamp = self._clock()
        entry_id = f"{timestamp}-{secrets.token_hex(3)}"

        entry = {
            'id': entry_id,
            'timestamp': timestamp,
            'tournamentId': tournament_id,
            'action': event.action,
            'actorType': event.actor_type,
            'actorId': event.actor_id,
            'ip': event.ip,
            'userAgent': event.user_agent,
            'targetType': event.target_type,
            'targetId': event.target_id,
            'details': event.details,
        }
        entry = {k: v for k, v in entry.items() if v is not None}

        try:
            self.store.set(_entry_key(tournament_id, entry_id), entry, ttl=self.ttl_seconds)

            list_key = _list_key(tournament_id)
            self.store.lpush(list_key, entry_id)
            self.store.ltrim(list_key, 0, config.MAX_AUDIT_ENTRIES_PER_TOURNAMENT - 1)
            if self.store.ttl(list_key) < 0:
                self.store.expire(list_key, self.ttl_seconds)

            logger.debug(f"Audit {event.action} for {tournament_id} ({entry_id})")
        except Exception as e:
            logger.error(f"Failed to log audit entry {event.action} for {tournament_id}: {e}", exc_info=True)

        return entry_id

    def query(self, tournament_id: str, query: Optional[AuditQuery] = None) -> List[dict]:
        """
        Fetch audit entries, newest first.

        Offset and limit page through the raw list; filters are applied to
        the fetched page and expired entries are skipped.
        """
        query = query or AuditQuery()
        ids = self.store.lrange(_list_key(tournament_id), query.offset, query.offset + query.limit - 1)

        entries = []
        for entry_id in ids:
            entry = self.store.get(_entry_key(tournament_id, entry_id))
            if entry and query.matches(entry):
                entries.append(entry)
        return entries

    def stats(self, tournament_id: str) -> dict:
        """Entry count plus action counts over the ten most recent entries."""
        total = self.store.llen(_list_key(tournament_id))
        recent = self.query(tournament_id, AuditQuery(limit=10))

        action_counts: Dict[str, int] = {}
        for entry in recent:
            action_counts[entry['action']] = action_counts.get(entry['action'], 0) + 1

        return {
            'totalEntries': total,
            'actionCounts': action_counts,
            'recentActivity': recent,
        }

    def to_dataframe(self, tournament_id: str, query: Optional[AuditQuery] = None) -> pd.DataFrame:
        """Audit entries as a DataFrame, oldest first, details flattened."""
        query = query or AuditQuery(limit=config.MAX_AUDIT_ENTRIES_PER_TOURNAMENT)
        entries = self.query(tournament_id, query)

        columns = ['id', 'timestamp', 'action', 'actorType', 'actorId', 'ip', 'targetType', 'targetId']
        if not entries:
            return pd.DataFrame(columns=columns + ['time'])

        df = pd.json_normalize(entries, sep='.')
        for column in columns:
            if column not in df.columns:
                df[column] = None

        df = df.sort_values('timestamp').reset_index(drop=True)
        df['time'] = pd.to_datetime(df['timestamp'], unit='ms', utc=True)
        detail_columns = sorted(c for c in df.columns if c.startswith('details.'))
        return df[columns + ['time'] + detail_columns]

    def export_csv(self, tournament_id: str, output_path: Path) -> Path:
        """
        Write a tournament's audit log to CSV.

        Returns:
            Path written
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        df = self.to_dataframe(tournament_id)
        df.to_csv(output_path, index=False)

        logger.info(f"Exported {len(df)} audit entries for {tournament_id} to {output_path}")
        return output_path

"""
Key-value persistence for tournaments, ledgers and indexes.

Two interchangeable stores implement the KeyValueStore contract:
- MemoryStore: thread-safe in-process store with TTLs (development, tests)
- RestKVStore: Redis-over-HTTP REST API via requests.Session

Values are JSON documents. TournamentRepository and TournamentIndex map the
domain objects onto the key layout:

    tournament:{id}:config|state|teams|players|profiles|team_profiles
    tournaments:all, tournaments:published      (sets)
    tournaments:index:{id}                      (index entry)
    archive:{id}:data|metadata
"""

import fnmatch
import json
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from .. import config
from .errors import ConflictError, ServiceUnavailableError
from .models import AuctionState, Player, Team, Tournament, now_ms

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


class KeyValueStore:
    """
    Minimal Redis-like contract used by the service.

    All values passed to set() must be JSON-serializable; get() returns the
    decoded document or None.
    """

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        raise NotImplementedError

    def delete(self, *keys: str) -> int:
        raise NotImplementedError

    def incr(self, key: str) -> int:
        raise NotImplementedError

    def expire(self, key: str, seconds: int) -> bool:
        raise NotImplementedError

    def ttl(self, key: str) -> int:
        """Seconds to live; -1 when the key has no expiry, -2 when missing."""
        raise NotImplementedError

    def sadd(self, key: str, *members: str) -> int:
        raise NotImplementedError

    def srem(self, key: str, *members: str) -> int:
        raise NotImplementedError

    def smembers(self, key: str) -> List[str]:
        raise NotImplementedError

    def lpush(self, key: str, value: Any) -> int:
        raise NotImplementedError

    def ltrim(self, key: str, start: int, stop: int) -> None:
        raise NotImplementedError

    def lrange(self, key: str, start: int, stop: int) -> List[Any]:
        raise NotImplementedError

    def llen(self, key: str) -> int:
        raise NotImplementedError

    def keys(self, pattern: str) -> List[str]:
        raise NotImplementedError

    def set_if_field(self, key: str, value: dict, field: str, expected: Any, missing: Any = None) -> bool:
        """
        Compare-and-set a JSON document.

        Writes value only if the stored document's field equals expected.
        A missing document matches expected=None. A stored document without
        the field (or with it set to null) compares as `missing`.

        Returns:
            True if written, False if the stored field differed
        """
        raise NotImplementedError


# ===== In-memory Store =====

class MemoryStore(KeyValueStore):
    """Thread-safe in-process store with lazy TTL expiry."""

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or now_ms
        self._lock = threading.RLock()
        self._data: Dict[str, Any] = {}
        self._expiry: Dict[str, int] = {}   # key -> expiry epoch ms

    def _live(self, key: str) -> bool:
        expires = self._expiry.get(key)
        if expires is not None and self._clock() >= expires:
            self._data.pop(key, None)
            self._expiry.pop(key, None)
        return key in self._data

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            if not self._live(key):
                return None
            return json.loads(self._data[key])

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        with self._lock:
            self._data[key] = json.dumps(value)
            if ttl:
                self._expiry[key] = self._clock() + ttl * 1000
            else:
                self._expiry.pop(key, None)

    def delete(self, *keys: str) -> int:
        removed = 0
        with self._lock:
            for key in keys:
                if self._live(key):
                    removed += 1
                self._data.pop(key, None)
                self._expiry.pop(key, None)
        return removed

    def incr(self, key: str) -> int:
        with self._lock:
            current = json.loads(self._data[key]) if self._live(key) else 0
            current = int(current) + 1
            self._data[key] = json.dumps(current)
            return current

    def expire(self, key: str, seconds: int) -> bool:
        with self._lock:
            if not self._live(key):
                return False
            self._expiry[key] = self._clock() + seconds * 1000
            return True

    def ttl(self, key: str) -> int:
        with self._lock:
            if not self._live(key):
                return -2
            expires = self._expiry.get(key)
            if expires is None:
                return -1
            return max(0, -(-(expires - self._clock()) // 1000))

    # Sets are stored as sorted JSON lists

    def sadd(self, key: str, *members: str) -> int:
        with self._lock:
            current = set(json.loads(self._data[key])) if self._live(key) else set()
            added = len(set(members) - current)
            current.update(members)
            self._data[key] = json.dumps(sorted(current))
            return added

    def srem(self, key: str, *members: str) -> int:
        with self._lock:
            if not self._live(key):
                return 0
            current = set(json.loads(self._data[key]))
            removed = len(current & set(members))
            current.difference_update(members)
            self._data[key] = json.dumps(sorted(current))
            return removed

    def smembers(self, key: str) -> List[str]:
        with self._lock:
            if not self._live(key):
                return []
            return json.loads(self._data[key])

    # Lists keep newest entries at index 0

    def lpush(self, key: str, value: Any) -> int:
        with self._lock:
            current = json.loads(self._data[key]) if self._live(key) else []
            current.insert(0, value)
            self._data[key] = json.dumps(current)
            return len(current)

    def ltrim(self, key: str, start: int, stop: int) -> None:
        with self._lock:
            if not self._live(key):
                return
            current = json.loads(self._data[key])
            self._data[key] = json.dumps(_redis_slice(current, start, stop))

    def lrange(self, key: str, start: int, stop: int) -> List[Any]:
        with self._lock:
            if not self._live(key):
                return []
            return _redis_slice(json.loads(self._data[key]), start, stop)

    def llen(self, key: str) -> int:
        with self._lock:
            if not self._live(key):
                return 0
            return len(json.loads(self._data[key]))

    def keys(self, pattern: str) -> List[str]:
        with self._lock:
            return sorted(k for k in list(self._data) if self._live(k) and fnmatch.fnmatchcase(k, pattern))

    def set_if_field(self, key: str, value: dict, field: str, expected: Any, missing: Any = None) -> bool:
        with self._lock:
            current = json.loads(self._data[key]) if self._live(key) else None
            current_value = None
            if current is not None:
                current_value = current.get(field)
                if current_value is None:
                    current_value = missing
            if current_value != expected:
                return False
            self._data[key] = json.dumps(value)
            self._expiry.pop(key, None)
            return True


def _redis_slice(items: list, start: int, stop: int) -> list:
    """Inclusive Redis-style range with negative indexes."""
    length = len(items)
    if start < 0:
        start = max(0, length + start)
    if stop < 0:
        stop = length + stop
    return items[start:stop + 1]


# ===== REST Store =====

_SET_IF_FIELD_SCRIPT = """
local current = redis.call('GET', KEYS[1])
local actual = 'null'
if current then
  local doc = cjson.decode(current)
  local value = doc[ARGV[2]]
  if value ~= nil and value ~= cjson.null then
    actual = cjson.encode(value)
  else
    actual = ARGV[4]
  end
end
if actual ~= ARGV[3] then
  return 0
end
redis.call('SET', KEYS[1], ARGV[1])
return 1
"""


class RestKVStore(KeyValueStore):
    """Client for a Redis-compatible REST endpoint (Upstash style)."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: int = config.KV_REQUEST_TIMEOUT,
        max_retries: int = 3
    ):
        """
        Initialize REST store client.

        Args:
            base_url: REST endpoint accepting JSON command arrays
            token: Bearer token for the endpoint
            timeout: Request timeout in seconds
            max_retries: Attempts per command on transport failure
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries

        # Session for connection pooling
        self.session = requests.Session()
        self.session.headers['Authorization'] = f'Bearer {token}'

    def _command(self, *args: Any) -> Any:
        """
        Execute one Redis command with retries.

        Returns:
            The command's "result" field

        Raises:
            ServiceUnavailableError: After all retries are exhausted or the
                endpoint reports an error
        """
        command = [str(a) if not isinstance(a, str) else a for a in args]

        for attempt in range(1, self.max_retries + 1):
            try:
                logger.debug(f"KV {command[0]} (attempt {attempt}/{self.max_retries})")
                response = self.session.post(self.base_url, json=command, timeout=self.timeout)
                response.raise_for_status()
                payload = response.json()

                if payload.get('error'):
                    logger.error(f"KV {command[0]} failed: {payload['error']}")
                    raise ServiceUnavailableError('kv', {'error': payload['error']})

                return payload.get('result')

            except requests.Timeout:
                logger.warning(f"KV request timeout (attempt {attempt}/{self.max_retries})")
                if attempt == self.max_retries:
                    raise ServiceUnavailableError('kv')
                time.sleep(0.1 * 2 ** attempt)

            except requests.RequestException as e:
                logger.error(f"KV request failed (attempt {attempt}/{self.max_retries}): {e}")
                if attempt == self.max_retries:
                    raise ServiceUnavailableError('kv')
                time.sleep(0.1 * 2 ** attempt)

    @staticmethod
    def _decode(raw: Optional[str]) -> Optional[Any]:
        if raw is None:
            return None
        return json.loads(raw)

    def get(self, key: str) -> Optional[Any]:
        return self._decode(self._command('GET', key))

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if ttl:
            self._command('SET', key, json.dumps(value), 'EX', ttl)
        else:
            self._command('SET', key, json.dumps(value))

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(self._command('DEL', *keys) or 0)

    def incr(self, key: str) -> int:
        return int(self._command('INCR', key))

    def expire(self, key: str, seconds: int) -> bool:
        return bool(self._command('EXPIRE', key, seconds))

    def ttl(self, key: str) -> int:
        return int(self._command('TTL', key))

    def sadd(self, key: str, *members: str) -> int:
        return int(self._command('SADD', key, *members) or 0)

    def srem(self, key: str, *members: str) -> int:
        return int(self._command('SREM', key, *members) or 0)

    def smembers(self, key: str) -> List[str]:
        return sorted(self._command('SMEMBERS', key) or [])

    def lpush(self, key: str, value: Any) -> int:
        return int(self._command('LPUSH', key, json.dumps(value)))

    def ltrim(self, key: str, start: int, stop: int) -> None:
        self._command('LTRIM', key, start, stop)

    def lrange(self, key: str, start: int, stop: int) -> List[Any]:
        return [json.loads(item) for item in self._command('LRANGE', key, start, stop) or []]

    def llen(self, key: str) -> int:
        return int(self._command('LLEN', key) or 0)

    def keys(self, pattern: str) -> List[str]:
        return sorted(self._command('KEYS', pattern) or [])

    def set_if_field(self, key: str, value: dict, field: str, expected: Any, missing: Any = None) -> bool:
        result = self._command(
            'EVAL', _SET_IF_FIELD_SCRIPT, 1, key,
            json.dumps(value), field, json.dumps(expected), json.dumps(missing)
        )
        return int(result or 0) == 1


def create_store(clock: Optional[Clock] = None) -> KeyValueStore:
    """REST store when an endpoint is configured, otherwise an in-memory store."""
    if config.KV_REST_URL:
        logger.info(f"Using REST key-value store at {config.KV_REST_URL}")
        return RestKVStore(config.KV_REST_URL, config.KV_REST_TOKEN)

    logger.warning("DRAFTCAST_KV_URL not set, using in-memory store (data is not persisted)")
    return MemoryStore(clock=clock)


# ===== Repositories =====

DATA_KEYS = ('state', 'teams', 'players', 'profiles', 'team_profiles')


def tournament_key(tournament_id: str, name: str) -> str:
    return f"tournament:{tournament_id}:{name}"


def archive_key(tournament_id: str, name: str) -> str:
    return f"archive:{tournament_id}:{name}"


class TournamentRepository:
    """Reads and writes the per-tournament documents."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    # Config

    def get_config(self, tournament_id: str) -> Optional[Tournament]:
        data = self.store.get(tournament_key(tournament_id, 'config'))
        return Tournament.from_dict(data) if data else None

    def save_config(self, tournament: Tournament) -> None:
        self.store.set(tournament_key(tournament.id, 'config'), tournament.to_dict())

    def exists(self, tournament_id: str) -> bool:
        return self.store.get(tournament_key(tournament_id, 'config')) is not None

    # Ledger

    def get_state(self, tournament_id: str) -> Optional[AuctionState]:
        data = self.store.get(tournament_key(tournament_id, 'state'))
        return AuctionState.from_dict(data) if data else None

    def init_state(self, tournament_id: str, state: AuctionState) -> None:
        self.store.set(tournament_key(tournament_id, 'state'), state.to_dict())

    def save_state(
        self,
        tournament_id: str,
        state: AuctionState,
        expected_version: Optional[int]
    ) -> AuctionState:
        """
        Write a ledger if nobody else wrote since it was read.

        Args:
            tournament_id: Tournament slug
            state: New ledger; its version is bumped before writing
            expected_version: Version that was read (None if no ledger existed)

        Returns:
            The written ledger

        Raises:
            ConflictError: If the stored version moved on
        """
        state.version = (expected_version or 0) + 1
        written = self.store.set_if_field(
            tournament_key(tournament_id, 'state'),
            state.to_dict(),
            'version',
            expected_version,
            missing=0,
        )
        if not written:
            logger.warning(f"Version conflict writing state for {tournament_id} (expected {expected_version})")
            raise ConflictError(
                'Auction state was modified by another request. Refresh and retry.',
                code='STATE_VERSION_CONFLICT',
                details={'expectedVersion': expected_version},
            )
        return state

    # Sheets

    def get_teams(self, tournament_id: str) -> List[Team]:
        data = self.store.get(tournament_key(tournament_id, 'teams')) or []
        return [Team.from_dict(t) for t in data]

    def set_teams(self, tournament_id: str, teams: List[Team]) -> None:
        self.store.set(tournament_key(tournament_id, 'teams'), [t.to_dict() for t in teams])

    def get_players(self, tournament_id: str) -> List[Player]:
        data = self.store.get(tournament_key(tournament_id, 'players')) or []
        return [Player.from_dict(p) for p in data]

    def set_players(self, tournament_id: str, players: List[Player]) -> None:
        self.store.set(tournament_key(tournament_id, 'players'), [p.to_dict() for p in players])

    def get_profiles(self, tournament_id: str) -> Dict[str, dict]:
        return self.store.get(tournament_key(tournament_id, 'profiles')) or {}

    def set_profiles(self, tournament_id: str, profiles: Dict[str, dict]) -> None:
        self.store.set(tournament_key(tournament_id, 'profiles'), profiles)

    def get_team_profiles(self, tournament_id: str) -> Dict[str, dict]:
        return self.store.get(tournament_key(tournament_id, 'team_profiles')) or {}

    def set_team_profiles(self, tournament_id: str, profiles: Dict[str, dict]) -> None:
        self.store.set(tournament_key(tournament_id, 'team_profiles'), profiles)

    # Bulk

    def full_data(self, tournament_id: str) -> dict:
        state = self.get_state(tournament_id)
        config_doc = self.store.get(tournament_key(tournament_id, 'config'))
        return {
            'config': config_doc,
            'state': state.to_dict() if state else None,
            'teams': [t.to_dict() for t in self.get_teams(tournament_id)],
            'players': [p.to_dict() for p in self.get_players(tournament_id)],
            'profiles': self.get_profiles(tournament_id),
            'teamProfiles': self.get_team_profiles(tournament_id),
        }

    def delete_data(self, tournament_id: str) -> None:
        """Delete the live data keys, keeping the config."""
        self.store.delete(*[tournament_key(tournament_id, name) for name in DATA_KEYS])

    def delete_all(self, tournament_id: str) -> None:
        self.store.delete(
            tournament_key(tournament_id, 'config'),
            *[tournament_key(tournament_id, name) for name in DATA_KEYS]
        )

    def save_archive(self, tournament_id: str, data: dict, metadata: dict) -> None:
        self.store.set(archive_key(tournament_id, 'data'), data, ttl=config.ARCHIVE_TTL_SECONDS)
        self.store.set(archive_key(tournament_id, 'metadata'), metadata, ttl=config.ARCHIVE_TTL_SECONDS)


class TournamentIndex:
    """The tournaments:all / tournaments:published sets plus index entries."""

    ALL_KEY = 'tournaments:all'
    PUBLISHED_KEY = 'tournaments:published'

    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def entry_key(tournament_id: str) -> str:
        return f"tournaments:index:{tournament_id}"

    @staticmethod
    def build_entry(tournament: Tournament) -> dict:
        entry = {
            'id': tournament.id,
            'name': tournament.name,
            'status': tournament.status,
            'published': tournament.published,
            'sport': tournament.sport,
            'location': tournament.location,
            'startDate': tournament.start_date,
            'logo': tournament.logo,
            'createdAt': tournament.created_at,
        }
        return {k: v for k, v in entry.items() if v is not None}

    def add(self, tournament: Tournament) -> None:
        """Add or refresh a tournament's index entry and set memberships."""
        self.store.sadd(self.ALL_KEY, tournament.id)
        if tournament.published:
            self.store.sadd(self.PUBLISHED_KEY, tournament.id)
        else:
            self.store.srem(self.PUBLISHED_KEY, tournament.id)
        self.store.set(self.entry_key(tournament.id), self.build_entry(tournament))

    def remove(self, tournament_id: str) -> None:
        self.store.srem(self.ALL_KEY, tournament_id)
        self.store.srem(self.PUBLISHED_KEY, tournament_id)
        self.store.delete(self.entry_key(tournament_id))

    def set_published(self, tournament_id: str, published: bool) -> None:
        if published:
            self.store.sadd(self.PUBLISHED_KEY, tournament_id)
        else:
            self.store.srem(self.PUBLISHED_KEY, tournament_id)

        entry = self.store.get(self.entry_key(tournament_id))
        if entry:
            entry['published'] = published
            self.store.set(self.entry_key(tournament_id), entry)

    def get_entry(self, tournament_id: str) -> Optional[dict]:
        return self.store.get(self.entry_key(tournament_id))

    def list_published(self) -> List[dict]:
        """Published index entries, newest first."""
        entries = [self.get_entry(tid) for tid in self.store.smembers(self.PUBLISHED_KEY)]
        entries = [e for e in entries if e]
        return sorted(entries, key=lambda e: e.get('createdAt', 0), reverse=True)

"""
Request orchestration for the auction service.

AuctionServices bundles the collaborators (store, repositories, tokens,
audit log, rate limiter, clock, random generator). TournamentService runs
each API operation against them:

    look up tournament → validate body → lifecycle gate → authorize
        → apply → persist (version-checked) → touch activity → queue audit

Audit records produced by a successful operation are queued on the
RequestContext; the HTTP layer hands them to background tasks.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np

from .. import config
from .actions import READ_ONLY_ACTIONS, VerifyAction, parse_action
from .api_serializers import (
    CreateTournamentRequest,
    DeleteTournamentRequest,
    PlayersUpdateRequest,
    TeamsUpdateRequest,
    TournamentPatchRequest,
    UpdateTournamentRequest,
    parse_body,
    serialize_tournament,
)
from .audit import ACTOR_TYPES, AUDIT_ACTIONS, AuditEvent, AuditLog, AuditQuery
from .auth import AuthResult, TokenService, authorize, extract_credentials, hash_pin
from .errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError, RateLimitError, UnauthorizedError
from .lifecycle import (
    ensure_mutable,
    ensure_readable,
    extend_expiry,
    tournament_lifecycle,
    tournaments_to_archive,
    tournaments_to_delete,
    transition_status,
)
from .models import Tournament, TournamentSettings, create_initial_auction_state, default_expiry, now_ms
from .rate_limit import RateLimiter, auth_rate_limit_id, client_ip, tournament_rate_limit_id
from .state_machine import AuctionStateMachine
from .storage import Clock, KeyValueStore, TournamentIndex, TournamentRepository, create_store
from .validation import normalize_slug, require_valid, validate_admin_pin, validate_tournament_slug

logger = logging.getLogger(__name__)


@dataclass
class AuctionServices:
    """Collaborators shared by every request."""

    store: KeyValueStore
    repository: TournamentRepository
    index: TournamentIndex
    tokens: TokenService
    audit: AuditLog
    rate_limiter: RateLimiter
    clock: Clock
    rng: np.random.Generator


def build_services(
    store: Optional[KeyValueStore] = None,
    clock: Optional[Clock] = None,
    rng: Optional[np.random.Generator] = None,
    jwt_secret: Optional[str] = None
) -> AuctionServices:
    """
    Wire up collaborators.

    Args:
        store: Key-value store (default: from config, in-memory if unset)
        clock: Epoch-ms clock (default: wall clock)
        rng: Random generator for RANDOM picks
        jwt_secret: Token signing secret (default: from config)
    """
    clock = clock or now_ms
    store = store if store is not None else create_store(clock=clock)
    return AuctionServices(
        store=store,
        repository=TournamentRepository(store),
        index=TournamentIndex(store),
        tokens=TokenService(secret=jwt_secret, clock=clock),
        audit=AuditLog(store, clock=clock),
        rate_limiter=RateLimiter(store, clock=clock),
        clock=clock,
        rng=rng if rng is not None else np.random.default_rng(),
    )


_services: Optional[AuctionServices] = None


def get_services() -> AuctionServices:
    """FastAPI dependency: the process-wide services, created on first use."""
    global _services
    if _services is None:
        _services = build_services()
    return _services


def set_services(services: Optional[AuctionServices]) -> None:
    global _services
    _services = services


@dataclass
class RequestContext:
    """What the service needs to know about the HTTP request."""

    ip: str = 'unknown'
    headers: Mapping[str, str] = field(default_factory=dict)
    user_agent: Optional[str] = None
    pending_audit: List[Tuple[str, AuditEvent]] = field(default_factory=list)

    @classmethod
    def from_request(cls, request) -> 'RequestContext':
        """Build from a Starlette request."""
        peer = request.client.host if request.client else None
        return cls(
            ip=client_ip(request.headers, peer),
            headers=request.headers,
            user_agent=request.headers.get('user-agent'),
        )

    def queue_audit(self, tournament_id: str, event: AuditEvent, auth: Optional[AuthResult] = None) -> None:
        event.ip = event.ip or self.ip
        event.user_agent = event.user_agent or self.user_agent
        if auth is not None and event.actor_id is None:
            event.actor_id = auth.session_id or auth.token_type
        self.pending_audit.append((tournament_id, event))


class TournamentService:
    """API operations over tournaments, sheets and the auction ledger."""

    def __init__(self, services: AuctionServices):
        self.services = services
        self.repository = services.repository
        self.index = services.index

    def now(self) -> int:
        return self.services.clock()

    # ===== Lookups and Access =====

    def load_tournament(self, tournament_id: str, allow_archived: bool = True) -> Tournament:
        """
        Fetch a tournament config.

        Raises:
            NotFoundError: If missing, or archived when allow_archived is False
        """
        tournament = self.repository.get_config(tournament_id)
        if tournament is None or (tournament.archived and not allow_archived):
            raise NotFoundError('Tournament', tournament_id)
        return tournament

    def authenticate(
        self,
        tournament: Tournament,
        ctx: RequestContext,
        body: Optional[dict] = None,
        log_failure: bool = True
    ) -> AuthResult:
        """
        Check the request's credentials.

        Failed attempts count against a per IP and tournament limit, so a
        signed-in admin can keep polling and writing. Failures are audited
        as AUTH_FAILED unless log_failure is False.

        Raises:
            RateLimitError: Too many failed attempts in the window
        """
        attempt_id = auth_rate_limit_id(ctx.ip, tournament.id)
        self.services.rate_limiter.ensure_available(attempt_id, 'AUTH_ATTEMPT')

        credentials = extract_credentials(ctx.headers, body)
        result = authorize(tournament, credentials, self.services.tokens)

        if not result.authorized:
            self.services.rate_limiter.check(attempt_id, 'AUTH_ATTEMPT')

        if not result.authorized and log_failure:
            logger.warning(f"Auth failed for {tournament.id} from {ctx.ip}: {result.reason}")
            self.services.audit.record(
                tournament.id,
                AuditEvent(action='AUTH_FAILED', actor_type='public', ip=ctx.ip, details={'reason': result.reason}),
            )

        return result

    def require_admin(self, tournament: Tournament, ctx: RequestContext, body: Optional[dict] = None) -> AuthResult:
        """
        Raises:
            UnauthorizedError: If no valid credential was presented
        """
        result = self.authenticate(tournament, ctx, body)
        if not result.authorized:
            raise UnauthorizedError(result.reason or 'Authentication required')
        return result

    def optional_admin(self, tournament: Tournament, ctx: RequestContext) -> bool:
        """Authorized status for public reads; only tried when credentials are present."""
        if not extract_credentials(ctx.headers).present():
            return False
        try:
            return self.authenticate(tournament, ctx, log_failure=False).authorized
        except RateLimitError:
            logger.info(f"Auth rate limited for {tournament.id} from {ctx.ip}, serving public view")
            return False

    def touch_activity(self, tournament_id: str) -> None:
        tournament = self.repository.get_config(tournament_id)
        if tournament:
            tournament.last_activity_at = self.now()
            self.repository.save_config(tournament)

    # ===== Auction State =====

    def get_state_view(self, tournament_id: str, ctx: RequestContext) -> dict:
        """Hydrated auction view; raw ledger attached for authorized callers."""
        from .views import build_state_view

        tournament = self.load_tournament(tournament_id, allow_archived=False)
        lifecycle = ensure_readable(tournament, self.now())

        if tournament.published:
            authorized = self.optional_admin(tournament, ctx)
        else:
            self.require_admin(tournament, ctx)
            authorized = True

        state = self.repository.get_state(tournament_id)
        if state is None:
            state = create_initial_auction_state(self.now())
            self.repository.init_state(tournament_id, state)

        return build_state_view(
            tournament,
            state,
            self.repository.get_teams(tournament_id),
            self.repository.get_players(tournament_id),
            self.repository.get_profiles(tournament_id),
            self.repository.get_team_profiles(tournament_id),
            lifecycle,
            include_raw=authorized,
        )

    def apply_action(self, tournament_id: str, body: Any, ctx: RequestContext) -> dict:
        """
        Run one auction action end to end.

        Returns:
            Response payload: {success, state} after a write, or
            {success, message?, randomPlayer?} when nothing was written

        Raises:
            AppError subclasses for every rejected request
        """
        tournament = self.load_tournament(tournament_id, allow_archived=False)
        action = parse_action(body)

        if isinstance(action, READ_ONLY_ACTIONS):
            ensure_readable(tournament, self.now())
        else:
            ensure_mutable(tournament, self.now())

        auth = self.require_admin(tournament, ctx, body)

        if isinstance(action, VerifyAction):
            return {'success': True, 'tokenType': auth.token_type}

        stored = self.repository.get_state(tournament_id)
        state = stored or create_initial_auction_state(self.now())
        expected_version = stored.version if stored else None

        if action.expected_version is not None and action.expected_version != state.version:
            raise ConflictError(
                'Auction state has changed since it was read. Refresh and retry.',
                code='STATE_VERSION_CONFLICT',
                details={'expectedVersion': action.expected_version, 'currentVersion': state.version},
            )

        machine = AuctionStateMachine(
            tournament,
            self.repository.get_teams(tournament_id),
            self.repository.get_players(tournament_id),
            rng=self.services.rng,
            clock=self.services.clock,
        )
        outcome = machine.apply(state, action)

        if not outcome.changed:
            response = {'success': True}
            if outcome.message:
                response['message'] = outcome.message
            response.update(outcome.extras)
            return response

        saved = self.repository.save_state(tournament_id, outcome.state, expected_version)
        self.touch_activity(tournament_id)

        if outcome.audit:
            ctx.queue_audit(tournament_id, outcome.audit, auth)

        response = {'success': True, 'state': saved.to_dict()}
        if outcome.message:
            response['message'] = outcome.message
        return response

    # ===== Tournaments =====

    def list_published(self) -> dict:
        tournaments = self.index.list_published()
        return {'tournaments': tournaments, 'count': len(tournaments)}

    def create_tournament(self, body: Any, ctx: RequestContext) -> dict:
        """
        Create a tournament with an empty ledger.

        Returns:
            Payload with the public tournament and the one-time master token

        Raises:
            RateLimitError: More than the daily creation quota from this IP
            ValidationError: Bad slug, PIN or body
            ConflictError: Slug already taken
        """
        limit = self.services.rate_limiter.enforce(ctx.ip, 'TOURNAMENT_CREATE')

        request = parse_body(CreateTournamentRequest, body)
        slug = normalize_slug(request.slug)
        require_valid(validate_tournament_slug(slug), 'slug')
        require_valid(validate_admin_pin(request.admin_pin), 'adminPin')

        if self.repository.exists(slug):
            raise ConflictError('Tournament ID already exists. Please choose a different ID.', code='SLUG_TAKEN')

        now = self.now()
        tournament = Tournament(
            id=slug,
            name=request.name,
            description=request.description,
            admin_pin_hash=hash_pin(request.admin_pin, slug),
            created_at=now,
            updated_at=now,
            last_activity_at=now,
            expires_at=default_expiry(now),
            settings=request.settings.to_settings() if request.settings else TournamentSettings(),
            sport=request.sport,
            location=request.location,
            start_date=request.start_date,
            end_date=request.end_date,
            logo=request.logo,
            theme=request.theme.to_dict() if request.theme else None,
        )

        self.repository.save_config(tournament)
        self.repository.init_state(slug, create_initial_auction_state(now))
        self.index.add(tournament)

        logger.info(f"Created tournament {slug} ({tournament.name})")
        ctx.queue_audit(slug, AuditEvent(
            action='TOURNAMENT_CREATED',
            target_type='tournament',
            target_id=slug,
            details={'name': tournament.name, 'sport': tournament.sport, 'location': tournament.location},
        ))

        return {
            'success': True,
            'tournament': serialize_tournament(tournament),
            'masterAdminToken': self.services.tokens.generate_master_token(slug),
            'message': (
                'Tournament created successfully. Save the masterAdminToken securely - '
                'it can be used to recover admin access if you forget your PIN.'
            ),
            'adminUrl': f"/{slug}/admin",
            'publicUrl': f"/{slug}",
            'rateLimit': limit.headers(),
        }

    def get_tournament(self, tournament_id: str, ctx: RequestContext) -> dict:
        tournament = self.load_tournament(tournament_id)
        lifecycle = ensure_readable(tournament, self.now())
        if not tournament.published:
            self.require_admin(tournament, ctx)
        return {'tournament': serialize_tournament(tournament, lifecycle)}

    def update_tournament(self, tournament_id: str, body: Any, ctx: RequestContext) -> dict:
        tournament = self.load_tournament(tournament_id)
        ensure_mutable(tournament, self.now())
        auth = self.require_admin(tournament, ctx, body)
        self.services.rate_limiter.enforce(tournament_rate_limit_id(ctx.ip, tournament_id), 'API_WRITE')

        request = parse_body(UpdateTournamentRequest, body)
        updates = request.model_dump(exclude_unset=True, by_alias=True)

        if request.settings is not None:
            settings = request.settings.apply_to(tournament.settings)
            self._check_team_size(tournament_id, settings.roster_limit)
            tournament.settings = settings

        for attr in ('name', 'description', 'sport', 'location', 'start_date', 'end_date', 'logo'):
            value = getattr(request, attr)
            if value is not None:
                setattr(tournament, attr, value)
        if request.theme is not None:
            tournament.theme = request.theme.to_dict()

        now = self.now()
        tournament.updated_at = now
        tournament.last_activity_at = now
        self.repository.save_config(tournament)
        self.index.add(tournament)

        ctx.queue_audit(tournament_id, AuditEvent(
            action='TOURNAMENT_UPDATED',
            target_type='tournament',
            target_id=tournament_id,
            details={'updates': sorted(updates)},
        ), auth)

        return {'success': True, 'tournament': serialize_tournament(tournament)}

    def _check_team_size(self, tournament_id: str, roster_limit: int) -> None:
        state = self.repository.get_state(tournament_id)
        if state is None:
            return
        largest = max((len(r) for r in state.rosters.values()), default=0)
        if largest > roster_limit:
            raise BadRequestError(
                f"Team size too small: a team already has {largest} rostered players",
                code='TEAM_SIZE_TOO_SMALL',
            )

    def patch_tournament(self, tournament_id: str, body: Any, ctx: RequestContext) -> dict:
        """publish / unpublish / getSessionToken / transition."""
        tournament = self.load_tournament(tournament_id)
        request = parse_body(TournamentPatchRequest, body)

        if request.action == 'getSessionToken' or (request.action == 'transition' and request.status == 'archived'):
            ensure_readable(tournament, self.now())
        else:
            ensure_mutable(tournament, self.now())

        auth = self.require_admin(tournament, ctx, body)
        now = self.now()

        if request.action == 'getSessionToken':
            ctx.queue_audit(tournament_id, AuditEvent(action='ADMIN_LOGIN', details={'via': auth.token_type}), auth)
            return {
                'success': True,
                'sessionToken': self.services.tokens.generate_session_token(tournament_id),
                'expiresIn': f"{config.SESSION_TOKEN_EXPIRY_HOURS}h",
            }

        if request.action in ('publish', 'unpublish'):
            published = request.action == 'publish'
            if tournament.published == published:
                return {'success': True, 'message': f"Tournament is already {request.action}ed"}

            tournament.published = published
            tournament.updated_at = now
            tournament.last_activity_at = now
            self.repository.save_config(tournament)
            self.index.set_published(tournament_id, published)

            ctx.queue_audit(tournament_id, AuditEvent(
                action='TOURNAMENT_PUBLISHED' if published else 'TOURNAMENT_UNPUBLISHED',
                target_type='tournament',
                target_id=tournament_id,
            ), auth)
            response = {'success': True, 'message': f"Tournament {request.action}ed"}
            if published:
                response['publicUrl'] = f"/{tournament_id}"
            return response

        # transition
        if request.status is None:
            raise BadRequestError('status is required for transition', code='STATUS_REQUIRED')

        previous = tournament.status
        if request.status == 'archived':
            self.archive_tournament(tournament_id)
        else:
            transition_status(tournament, request.status, now)
            self.repository.save_config(tournament)
            self.index.add(tournament)

        ctx.queue_audit(tournament_id, AuditEvent(
            action='TOURNAMENT_STATUS_CHANGED',
            target_type='tournament',
            target_id=tournament_id,
            details={'from': previous, 'to': request.status},
        ), auth)
        return {'success': True, 'status': request.status}

    def delete_tournament(self, tournament_id: str, body: Any, ctx: RequestContext) -> dict:
        tournament = self.load_tournament(tournament_id)
        auth = self.require_admin(tournament, ctx, body)
        request = parse_body(DeleteTournamentRequest, body or {})

        if tournament.status != 'draft':
            raise ForbiddenError('Only draft tournaments can be deleted. Archive completed tournaments instead.')
        if not request.confirm_delete:
            raise BadRequestError(
                'Deletion requires confirmation. Set confirmDelete: true in request body.',
                code='CONFIRMATION_REQUIRED',
            )

        self.delete_tournament_data(tournament_id)
        ctx.queue_audit(tournament_id, AuditEvent(
            action='TOURNAMENT_DELETED',
            target_type='tournament',
            target_id=tournament_id,
            details={'name': tournament.name},
        ), auth)
        return {'success': True, 'message': f'Tournament "{tournament.name}" has been deleted.'}

    def extend_tournament(self, tournament_id: str, additional_days: int) -> int:
        """Push a tournament's expiry forward (operator tooling)."""
        tournament = self.load_tournament(tournament_id)
        new_expiry = extend_expiry(tournament, additional_days, self.now())
        self.repository.save_config(tournament)
        return new_expiry

    # ===== Sheets =====

    def _public_read(self, tournament_id: str, ctx: RequestContext) -> Tournament:
        tournament = self.load_tournament(tournament_id, allow_archived=False)
        ensure_readable(tournament, self.now())
        if not tournament.published:
            self.require_admin(tournament, ctx)
        return tournament

    def get_teams(self, tournament_id: str, ctx: RequestContext) -> dict:
        self._public_read(tournament_id, ctx)
        teams = self.repository.get_teams(tournament_id)
        return {
            'teams': [t.to_dict() for t in teams],
            'profiles': self.repository.get_team_profiles(tournament_id),
            'count': len(teams),
        }

    def get_players(self, tournament_id: str, ctx: RequestContext) -> dict:
        self._public_read(tournament_id, ctx)
        players = self.repository.get_players(tournament_id)
        return {
            'players': [p.to_dict() for p in players],
            'profiles': self.repository.get_profiles(tournament_id),
            'count': len(players),
        }

    def replace_teams(self, tournament_id: str, body: Any, ctx: RequestContext) -> dict:
        """
        Replace the team sheet.

        Raises:
            BadRequestError: Duplicate ids, or a team with rostered players is missing
        """
        tournament = self.load_tournament(tournament_id, allow_archived=False)
        ensure_mutable(tournament, self.now())
        auth = self.require_admin(tournament, ctx, body)
        self.services.rate_limiter.enforce(tournament_rate_limit_id(ctx.ip, tournament_id), 'API_WRITE')

        request = parse_body(TeamsUpdateRequest, body)
        teams = [t.to_team() for t in request.teams]
        ids = [t.id for t in teams]
        if len(ids) != len(set(ids)):
            raise BadRequestError('Team ids must be unique', code='DUPLICATE_ID')

        state = self.repository.get_state(tournament_id)
        if state is not None:
            missing = sorted(tid for tid, roster in state.rosters.items() if roster and tid not in ids)
            if missing:
                raise BadRequestError(
                    f"Teams with rostered players cannot be removed: {', '.join(missing)}",
                    code='TEAM_IN_USE',
                )

        self.repository.set_teams(tournament_id, teams)
        if request.profiles is not None:
            profiles = {
                tid: {**p.model_dump(exclude_none=True, by_alias=True), 'updatedAt': self.now()}
                for tid, p in request.profiles.items()
            }
            self.repository.set_team_profiles(tournament_id, profiles)
        self.touch_activity(tournament_id)

        logger.info(f"Replaced team sheet for {tournament_id}: {len(teams)} teams")
        ctx.queue_audit(tournament_id, AuditEvent(
            action='TEAMS_UPDATED', target_type='team', details={'count': len(teams)},
        ), auth)
        return {'success': True, 'count': len(teams)}

    def replace_players(self, tournament_id: str, body: Any, ctx: RequestContext) -> dict:
        """
        Replace the player sheet.

        Raises:
            BadRequestError: Duplicate ids, or a sold player is missing
        """
        tournament = self.load_tournament(tournament_id, allow_archived=False)
        ensure_mutable(tournament, self.now())
        auth = self.require_admin(tournament, ctx, body)
        self.services.rate_limiter.enforce(tournament_rate_limit_id(ctx.ip, tournament_id), 'API_WRITE')

        request = parse_body(PlayersUpdateRequest, body)
        players = [p.to_player() for p in request.players]
        ids = [p.id for p in players]
        if len(ids) != len(set(ids)):
            raise BadRequestError('Player ids must be unique', code='DUPLICATE_ID')

        state = self.repository.get_state(tournament_id)
        if state is not None:
            missing = sorted(set(state.sold_players) - set(ids))
            if missing:
                raise BadRequestError(
                    f"Sold players cannot be removed: {', '.join(missing)}",
                    code='PLAYER_IN_USE',
                )

        self.repository.set_players(tournament_id, players)
        if request.profiles is not None:
            profiles = {
                pid: {**p.model_dump(exclude_none=True, by_alias=True), 'updatedAt': self.now()}
                for pid, p in request.profiles.items()
            }
            self.repository.set_profiles(tournament_id, profiles)
        self.touch_activity(tournament_id)

        logger.info(f"Replaced player sheet for {tournament_id}: {len(players)} players")
        ctx.queue_audit(tournament_id, AuditEvent(
            action='PLAYERS_UPDATED', target_type='player', details={'count': len(players)},
        ), auth)
        return {'success': True, 'count': len(players)}

    # ===== Audit =====

    def query_audit(self, tournament_id: str, query: AuditQuery, ctx: RequestContext) -> dict:
        tournament = self.load_tournament(tournament_id)
        ensure_readable(tournament, self.now())
        self.require_admin(tournament, ctx)
        if query.action and query.action not in AUDIT_ACTIONS:
            raise BadRequestError(f"Unknown audit action: {query.action}", code='INVALID_FILTER')
        if query.actor_type and query.actor_type not in ACTOR_TYPES:
            raise BadRequestError(f"Unknown actor type: {query.actor_type}", code='INVALID_FILTER')

        self.services.rate_limiter.enforce(tournament_rate_limit_id(ctx.ip, tournament_id), 'API_READ')

        entries = self.services.audit.query(tournament_id, query)
        return {
            'entries': entries,
            'count': len(entries),
            'limit': query.limit,
            'offset': query.offset,
            'stats': self.services.audit.stats(tournament_id),
        }

    def export_audit(self, tournament_id: str, output_path: Path) -> Path:
        """Write a tournament's audit trail to CSV (operator tooling)."""
        self.load_tournament(tournament_id)
        return self.services.audit.export_csv(tournament_id, output_path)

    # ===== Retention =====

    def all_tournaments(self) -> List[Tournament]:
        """Every stored tournament config, including archived ones."""
        tournaments = []
        for key in self.services.store.keys('tournament:*:config'):
            tournament_id = key.split(':')[1]
            tournament = self.repository.get_config(tournament_id)
            if tournament:
                tournaments.append(tournament)
        return tournaments

    def archive_tournament(self, tournament_id: str) -> None:
        """
        Archive a tournament: snapshot its data into one blob, mark the
        config archived, drop it from the indexes and delete live data.

        Raises:
            BadRequestError: If already archived or the transition is not allowed
        """
        tournament = self.load_tournament(tournament_id)
        if tournament.archived:
            raise BadRequestError('Tournament is already archived', code='ALREADY_ARCHIVED')

        now = self.now()
        data = self.repository.full_data(tournament_id)
        data['compressedAt'] = now

        transition_status(tournament, 'archived', now)
        tournament.archived = True
        tournament.archive_date = now

        self.repository.save_archive(
            tournament_id,
            data,
            {'name': tournament.name, 'completedAt': tournament.completed_at, 'archivedAt': now},
        )
        self.repository.save_config(tournament)
        self.index.remove(tournament_id)
        self.repository.delete_data(tournament_id)

        logger.info(f"Archived tournament {tournament_id}")

    def delete_tournament_data(self, tournament_id: str) -> None:
        self.repository.delete_all(tournament_id)
        self.index.remove(tournament_id)
        logger.info(f"Deleted tournament {tournament_id}")

    def sweep(self, apply: bool = False) -> Dict[str, List[str]]:
        """
        Find (and optionally process) tournaments due for archival or deletion.

        Args:
            apply: Archive and delete instead of only reporting

        Returns:
            Dict with 'archive' and 'delete' id lists
        """
        now = self.now()
        tournaments = self.all_tournaments()
        to_delete = tournaments_to_delete(tournaments, now)
        to_archive = [tid for tid in tournaments_to_archive(tournaments, now) if tid not in to_delete]

        logger.info(f"Sweep: {len(to_archive)} to archive, {len(to_delete)} to delete (apply={apply})")

        if apply:
            for tournament_id in to_archive:
                self.archive_tournament(tournament_id)
                self.services.audit.record(
                    tournament_id, AuditEvent(action='TOURNAMENT_ARCHIVED', actor_type='cron')
                )
            for tournament_id in to_delete:
                self.delete_tournament_data(tournament_id)
                self.services.audit.record(
                    tournament_id, AuditEvent(action='TOURNAMENT_DELETED', actor_type='cron')
                )

        return {'archive': to_archive, 'delete': to_delete}

    def lifecycle_of(self, tournament_id: str) -> dict:
        tournament = self.load_tournament(tournament_id)
        return tournament_lifecycle(tournament, self.now()).to_dict()


# ===== Health =====

def check_store_health(services: AuctionServices) -> Dict[str, Any]:
    """
    Round-trip a probe key through the store.

    Returns:
        Dict with status (healthy / degraded / unhealthy), latency in ms,
        and an error description when not healthy
    """
    start = services.clock()
    probe_key = f"health:ping:{start}"

    try:
        services.store.set(probe_key, {'timestamp': start}, ttl=60)
        result = services.store.get(probe_key)
        services.store.delete(probe_key)
    except Exception as e:
        logger.error(f"Store health check failed: {e}")
        return {'status': 'unhealthy', 'error': str(e)}

    latency = services.clock() - start
    if not result:
        return {'status': 'degraded', 'latency': latency, 'error': 'Read after write returned null'}
    if latency > config.HEALTH_LATENCY_WARN_MS:
        return {'status': 'degraded', 'latency': latency, 'error': 'High latency detected'}
    return {'status': 'healthy', 'latency': latency}

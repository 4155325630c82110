"""
Core data structures for tournaments, teams, players and the auction ledger.

These dataclasses are persisted as camelCase JSON documents in the key-value
store. AuctionState is the per-tournament roster ledger; every successful
auction action leaves it satisfying AuctionState.validate().
"""

import copy
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .. import config


AUCTION_STATUSES = ('IDLE', 'LIVE', 'SOLD', 'PAUSED')


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def _drop_none(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class TournamentSettings:
    """Auction rules for a tournament."""

    team_size: int = config.DEFAULT_TEAM_SIZE
    base_prices: Dict[str, int] = field(default_factory=lambda: dict(config.DEFAULT_BASE_PRICES))
    bid_increment: int = config.DEFAULT_BID_INCREMENT
    currency: str = config.DEFAULT_CURRENCY
    enable_joker_card: bool = True
    enable_intelligence: bool = True
    custom_rules: Optional[str] = None

    @property
    def roster_limit(self) -> int:
        """Biddable roster slots per team (captain and vice-captain excluded)."""
        return self.team_size - config.RESERVED_SLOTS

    def to_dict(self) -> dict:
        return _drop_none({
            'teamSize': self.team_size,
            'basePrices': dict(self.base_prices),
            'bidIncrement': self.bid_increment,
            'currency': self.currency,
            'enableJokerCard': self.enable_joker_card,
            'enableIntelligence': self.enable_intelligence,
            'customRules': self.custom_rules,
        })

    @classmethod
    def from_dict(cls, data: dict) -> 'TournamentSettings':
        base_prices = dict(config.DEFAULT_BASE_PRICES)
        base_prices.update(data.get('basePrices') or {})
        return cls(
            team_size=data.get('teamSize', config.DEFAULT_TEAM_SIZE),
            base_prices=base_prices,
            bid_increment=data.get('bidIncrement', config.DEFAULT_BID_INCREMENT),
            currency=data.get('currency', config.DEFAULT_CURRENCY),
            enable_joker_card=data.get('enableJokerCard', True),
            enable_intelligence=data.get('enableIntelligence', True),
            custom_rules=data.get('customRules'),
        )


@dataclass
class Tournament:
    """Tournament configuration document."""

    id: str                      # User-chosen slug
    name: str
    admin_pin_hash: str          # Salted hash, never the PIN itself
    created_at: int
    updated_at: int
    last_activity_at: int
    expires_at: int              # created_at + TOURNAMENT_EXPIRY_DAYS
    status: str = 'draft'
    published: bool = False
    settings: TournamentSettings = field(default_factory=TournamentSettings)
    description: Optional[str] = None
    completed_at: Optional[int] = None
    sport: Optional[str] = None
    location: Optional[str] = None
    start_date: Optional[int] = None
    end_date: Optional[int] = None
    logo: Optional[str] = None
    theme: Optional[Dict[str, str]] = None
    archived: bool = False
    archive_date: Optional[int] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return _drop_none({
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'status': self.status,
            'published': self.published,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
            'lastActivityAt': self.last_activity_at,
            'completedAt': self.completed_at,
            'expiresAt': self.expires_at,
            'settings': self.settings.to_dict(),
            'adminPinHash': self.admin_pin_hash,
            'sport': self.sport,
            'location': self.location,
            'startDate': self.start_date,
            'endDate': self.end_date,
            'logo': self.logo,
            'theme': self.theme,
            'archived': self.archived,
            'archiveDate': self.archive_date,
        })

    def to_public_dict(self) -> dict:
        """Tournament fields safe to hand to any caller."""
        data = self.to_dict()
        data.pop('adminPinHash', None)
        data.pop('lastActivityAt', None)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'Tournament':
        """Create Tournament from dictionary."""
        return cls(
            id=data['id'],
            name=data['name'],
            admin_pin_hash=data['adminPinHash'],
            created_at=data['createdAt'],
            updated_at=data.get('updatedAt', data['createdAt']),
            last_activity_at=data.get('lastActivityAt', data['createdAt']),
            expires_at=data['expiresAt'],
            status=data.get('status', 'draft'),
            published=data.get('published', False),
            settings=TournamentSettings.from_dict(data.get('settings') or {}),
            description=data.get('description'),
            completed_at=data.get('completedAt'),
            sport=data.get('sport'),
            location=data.get('location'),
            start_date=data.get('startDate'),
            end_date=data.get('endDate'),
            logo=data.get('logo'),
            theme=data.get('theme'),
            archived=data.get('archived', False),
            archive_date=data.get('archiveDate'),
        )


@dataclass
class Team:
    """A bidding team."""

    id: str
    name: str
    budget: int
    color: str
    captain_id: Optional[str] = None
    vice_captain_id: Optional[str] = None
    logo: Optional[str] = None

    def to_dict(self) -> dict:
        return _drop_none({
            'id': self.id,
            'name': self.name,
            'budget': self.budget,
            'color': self.color,
            'captainId': self.captain_id,
            'viceCaptainId': self.vice_captain_id,
            'logo': self.logo,
        })

    @classmethod
    def from_dict(cls, data: dict) -> 'Team':
        return cls(
            id=data['id'],
            name=data['name'],
            budget=data['budget'],
            color=data['color'],
            captain_id=data.get('captainId'),
            vice_captain_id=data.get('viceCaptainId'),
            logo=data.get('logo'),
        )


@dataclass
class Player:
    """A player in the auction pool."""

    id: str
    name: str
    role: str                    # Batsman / Bowler / All-rounder / WK-Batsman
    category: str                # APLUS / BASE / CAPTAIN / VICE_CAPTAIN
    availability: str = 'full'
    club: Optional[str] = None
    image: Optional[str] = None
    profile_url: Optional[str] = None

    def to_dict(self) -> dict:
        return _drop_none({
            'id': self.id,
            'name': self.name,
            'role': self.role,
            'category': self.category,
            'availability': self.availability,
            'club': self.club,
            'image': self.image,
            'profileUrl': self.profile_url,
        })

    @classmethod
    def from_dict(cls, data: dict) -> 'Player':
        return cls(
            id=data['id'],
            name=data['name'],
            role=data['role'],
            category=data['category'],
            availability=data.get('availability', 'full'),
            club=data.get('club'),
            image=data.get('image'),
            profile_url=data.get('profileUrl'),
        )


@dataclass
class AuctionState:
    """Roster ledger for one tournament's auction."""

    status: str = 'IDLE'
    current_player_id: Optional[str] = None
    sold_to_team_id: Optional[str] = None
    rosters: Dict[str, List[str]] = field(default_factory=dict)        # team_id -> player_ids
    sold_players: List[str] = field(default_factory=list)
    sold_prices: Dict[str, int] = field(default_factory=dict)          # player_id -> price
    team_spent: Dict[str, int] = field(default_factory=dict)           # team_id -> total spent
    unsold_players: List[str] = field(default_factory=list)
    joker_player_id: Optional[str] = None
    joker_requesting_team_id: Optional[str] = None
    used_jokers: Dict[str, str] = field(default_factory=dict)          # team_id -> player_id
    pause_message: Optional[str] = None
    pause_until: Optional[int] = None
    auction_start_time: Optional[int] = None
    bidding_durations: Dict[str, int] = field(default_factory=dict)    # player_id -> seconds
    last_update: int = 0
    version: int = 0

    def roster_of(self, team_id: str) -> List[str]:
        return self.rosters.get(team_id, [])

    def spent_by(self, team_id: str) -> int:
        return self.team_spent.get(team_id, 0)

    def clear_joker_claim(self) -> None:
        self.joker_player_id = None
        self.joker_requesting_team_id = None

    def clear_pause(self) -> None:
        self.pause_message = None
        self.pause_until = None

    def clear_active_player(self) -> None:
        self.current_player_id = None
        self.sold_to_team_id = None
        self.auction_start_time = None
        self.clear_joker_claim()

    def copy(self) -> 'AuctionState':
        return copy.deepcopy(self)

    def validate(self, team_size: Optional[int] = None) -> None:
        """
        Validate ledger consistency.

        Args:
            team_size: Tournament team size; enables the roster-limit check

        Raises:
            ValueError: If the ledger is inconsistent
        """
        if self.status not in AUCTION_STATUSES:
            raise ValueError(f"Unknown auction status: {self.status}")

        # Each sold player sits on exactly one roster
        rostered_players = set()
        for team_id, roster in self.rosters.items():
            for player_id in roster:
                if player_id in rostered_players:
                    raise ValueError(f"Player {player_id} appears on multiple rosters")
                rostered_players.add(player_id)

        if rostered_players != set(self.sold_players):
            raise ValueError("soldPlayers does not match rostered players")
        if len(self.sold_players) != len(set(self.sold_players)):
            raise ValueError("soldPlayers contains duplicates")

        # Spend tracking
        for team_id in set(self.rosters) | set(self.team_spent):
            expected = sum(self.sold_prices.get(p, 0) for p in self.roster_of(team_id))
            if self.spent_by(team_id) != expected:
                raise ValueError(
                    f"Spend mismatch for {team_id}: recorded {self.spent_by(team_id)}, "
                    f"rostered prices sum to {expected}"
                )

        if team_size is not None:
            limit = team_size - config.RESERVED_SLOTS
            for team_id, roster in self.rosters.items():
                if len(roster) > limit:
                    raise ValueError(f"Roster for {team_id} exceeds {limit} players")

        overlap = set(self.sold_players) & set(self.unsold_players)
        if overlap:
            raise ValueError(f"Players both sold and unsold: {sorted(overlap)}")

        if self.joker_player_id is not None and self.status != 'LIVE':
            raise ValueError("Joker claim pending while auction is not LIVE")

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'status': self.status,
            'currentPlayerId': self.current_player_id,
            'soldToTeamId': self.sold_to_team_id,
            'rosters': {tid: list(roster) for tid, roster in self.rosters.items()},
            'soldPlayers': list(self.sold_players),
            'soldPrices': dict(self.sold_prices),
            'teamSpent': dict(self.team_spent),
            'unsoldPlayers': list(self.unsold_players),
            'jokerPlayerId': self.joker_player_id,
            'jokerRequestingTeamId': self.joker_requesting_team_id,
            'usedJokers': dict(self.used_jokers),
            'pauseMessage': self.pause_message,
            'pauseUntil': self.pause_until,
            'auctionStartTime': self.auction_start_time,
            'biddingDurations': dict(self.bidding_durations),
            'lastUpdate': self.last_update,
            'version': self.version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'AuctionState':
        """
        Create AuctionState from dictionary.

        Documents written before the joker, unsold and duration fields
        existed load with those fields empty.
        """
        return cls(
            status=data.get('status', 'IDLE'),
            current_player_id=data.get('currentPlayerId'),
            sold_to_team_id=data.get('soldToTeamId'),
            rosters={tid: list(r) for tid, r in (data.get('rosters') or {}).items()},
            sold_players=list(data.get('soldPlayers') or []),
            sold_prices=dict(data.get('soldPrices') or {}),
            team_spent=dict(data.get('teamSpent') or {}),
            unsold_players=list(data.get('unsoldPlayers') or []),
            joker_player_id=data.get('jokerPlayerId'),
            joker_requesting_team_id=data.get('jokerRequestingTeamId'),
            used_jokers=dict(data.get('usedJokers') or {}),
            pause_message=data.get('pauseMessage'),
            pause_until=data.get('pauseUntil'),
            auction_start_time=data.get('auctionStartTime'),
            bidding_durations=dict(data.get('biddingDurations') or {}),
            last_update=data.get('lastUpdate', 0),
            version=data.get('version', 0),
        )


def create_initial_auction_state(timestamp: Optional[int] = None, version: int = 0) -> AuctionState:
    """
    Create an empty ledger at the start of a tournament (or after RESET).

    Args:
        timestamp: lastUpdate value in epoch ms (defaults to now)
        version: Version to start from; RESET keeps counting upward

    Returns:
        AuctionState in IDLE with no sales
    """
    return AuctionState(
        status='IDLE',
        last_update=timestamp if timestamp is not None else now_ms(),
        version=version,
    )


def default_expiry(created_at: int) -> int:
    """Expiry timestamp for a tournament created at created_at."""
    return created_at + config.TOURNAMENT_EXPIRY_DAYS * config.DAY_MS

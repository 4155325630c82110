"""
Apply auction actions to the roster ledger.

The AuctionStateMachine is responsible for:
- Checking each action's preconditions against the tournament's teams,
  players and settings
- Producing the next ledger (always on a copy; the input is never mutated)
- Describing the audit record for the change
- Re-validating ledger invariants after every mutation
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from .. import config
from .actions import (
    ClearAction,
    CorrectAction,
    JokerAction,
    PauseAction,
    RandomAction,
    ResetAction,
    SoldAction,
    StartAuctionAction,
    UnpauseAction,
    UnsoldAction,
    VerifyAction,
)
from .audit import AuditEvent
from .bidding import base_price_for, max_bid
from .errors import BadRequestError, InternalError
from .models import AuctionState, Player, Team, Tournament, create_initial_auction_state, now_ms
from .storage import Clock

logger = logging.getLogger(__name__)


@dataclass
class ActionOutcome:
    """Result of applying one action."""

    state: AuctionState
    changed: bool                         # False: nothing to persist
    message: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict)
    audit: Optional[AuditEvent] = None


class AuctionStateMachine:
    """Validates and applies actions for one tournament."""

    def __init__(
        self,
        tournament: Tournament,
        teams: List[Team],
        players: List[Player],
        rng: Optional[np.random.Generator] = None,
        clock: Optional[Clock] = None
    ):
        """
        Initialize the state machine.

        Args:
            tournament: Tournament whose settings govern the auction
            teams: Team sheet
            players: Player sheet (order is kept for RANDOM picks)
            rng: Random generator for RANDOM (seed it for reproducible picks)
            clock: Epoch-ms clock
        """
        self.tournament = tournament
        self.settings = tournament.settings
        self.teams: Dict[str, Team] = {t.id: t for t in teams}
        self.players: Dict[str, Player] = {p.id: p for p in players}
        self.player_order = [p.id for p in players]
        self.rng = rng if rng is not None else np.random.default_rng()
        self._clock = clock or now_ms

        self.handlers: Dict[type, Callable[[AuctionState, Any, int], ActionOutcome]] = {
            StartAuctionAction: self._start_auction,
            SoldAction: self._sold,
            UnsoldAction: self._unsold,
            PauseAction: self._pause,
            UnpauseAction: self._unpause,
            ClearAction: self._clear,
            JokerAction: self._joker,
            CorrectAction: self._correct,
            RandomAction: self._random,
            ResetAction: self._reset,
            VerifyAction: self._verify,
        }

    def apply(self, state: AuctionState, action) -> ActionOutcome:
        """
        Apply an action to a ledger.

        Args:
            state: Current ledger (left untouched)
            action: Parsed action variant

        Returns:
            ActionOutcome with the next ledger

        Raises:
            BadRequestError: If a precondition fails
            InternalError: If the resulting ledger breaks an invariant
        """
        handler = self.handlers.get(type(action))
        if handler is None:
            raise BadRequestError(f"Unknown action: {getattr(action, 'action', action)}")

        now = self._clock()
        outcome = handler(state.copy(), action, now)

        if outcome.changed:
            outcome.state.last_update = now
            try:
                outcome.state.validate(self.settings.team_size)
            except ValueError as e:
                logger.error(f"Ledger validation failed after {action.action} on {self.tournament.id}: {e}")
                raise InternalError('Auction state became inconsistent', details={'reason': str(e)})

            logger.info(
                f"{self.tournament.id}: {action.action} → {outcome.state.status} "
                f"({len(outcome.state.sold_players)} sold)"
            )

        return outcome

    # ===== Lookups =====

    def _player(self, player_id: str) -> Player:
        player = self.players.get(player_id)
        if player is None:
            raise BadRequestError(f"Player not found: {player_id}")
        return player

    def _team(self, team_id: str, label: str = 'Team') -> Team:
        team = self.teams.get(team_id)
        if team is None:
            raise BadRequestError(f"{label} not found: {team_id}")
        return team

    def _roster_full(self, state: AuctionState, team_id: str) -> bool:
        return len(state.roster_of(team_id)) >= self.settings.roster_limit

    def _format_price(self, amount: int) -> str:
        return f"{self.settings.currency}{amount:,}"

    # ===== Handlers =====

    def _start_auction(self, state: AuctionState, action: StartAuctionAction, now: int) -> ActionOutcome:
        player = self._player(action.player_id)
        if player.id in state.sold_players:
            raise BadRequestError(f"{player.name} was already sold")

        state.status = 'LIVE'
        state.current_player_id = player.id
        state.clear_pause()
        state.sold_to_team_id = None
        state.clear_joker_claim()
        state.auction_start_time = now

        return ActionOutcome(
            state=state,
            changed=True,
            audit=AuditEvent(
                action='AUCTION_STARTED',
                target_type='player',
                target_id=player.id,
                details={'playerName': player.name},
            ),
        )

    def _sold(self, state: AuctionState, action: SoldAction, now: int) -> ActionOutcome:
        if not state.current_player_id:
            raise BadRequestError('No player is currently being auctioned')

        player_id = state.current_player_id

        # Retried SOLD for a player already on a roster
        if player_id in state.sold_players:
            logger.info(f"{self.tournament.id}: duplicate SOLD for {player_id} ignored")
            return ActionOutcome(state=state, changed=False, message='Already processed')

        team = self._team(action.team_id)
        player = self.players.get(player_id)
        if player is None:
            raise BadRequestError(f"Current player not found: {player_id}")

        price = action.sold_price
        base_price = base_price_for(self.settings, player.category)
        joker_sale = (
            state.joker_player_id == player_id
            and state.joker_requesting_team_id == team.id
            and price == base_price
        )

        if price < base_price:
            raise BadRequestError(
                f"Sold price {self._format_price(price)} is below base price {self._format_price(base_price)}"
            )

        if self._roster_full(state, team.id):
            raise BadRequestError(f"{team.name} roster is full")

        spent = state.spent_by(team.id)
        ceiling = max_bid(
            team.budget,
            spent,
            len(state.roster_of(team.id)),
            self.settings.team_size,
            self.settings.base_prices['BASE'],
        )
        if not joker_sale and price > ceiling:
            raise BadRequestError(
                f"Bid of {self._format_price(price)} exceeds max allowed {self._format_price(ceiling)}"
            )

        bidding_duration = (now - state.auction_start_time) // 1000 if state.auction_start_time else 0

        state.status = 'SOLD'
        state.sold_to_team_id = team.id
        state.clear_pause()
        state.rosters[team.id] = state.roster_of(team.id) + [player_id]
        state.sold_players.append(player_id)
        state.sold_prices[player_id] = price
        state.team_spent[team.id] = spent + price
        state.bidding_durations[player_id] = bidding_duration
        state.auction_start_time = None

        if joker_sale:
            state.used_jokers[team.id] = player_id
        state.clear_joker_claim()

        if player_id in state.unsold_players:
            state.unsold_players = [p for p in state.unsold_players if p != player_id]

        return ActionOutcome(
            state=state,
            changed=True,
            audit=AuditEvent(
                action='PLAYER_SOLD',
                target_type='player',
                target_id=player_id,
                details={
                    'playerName': player.name,
                    'teamId': team.id,
                    'teamName': team.name,
                    'soldPrice': price,
                    'biddingDuration': bidding_duration,
                    'jokerUsed': joker_sale,
                },
            ),
        )

    def _unsold(self, state: AuctionState, action: UnsoldAction, now: int) -> ActionOutcome:
        player_id = state.current_player_id
        if not player_id:
            return ActionOutcome(state=state, changed=False, message='No player is currently being auctioned')

        if player_id not in state.unsold_players:
            state.unsold_players.append(player_id)

        state.status = 'IDLE'
        state.clear_active_player()
        state.clear_pause()

        return ActionOutcome(
            state=state,
            changed=True,
            audit=AuditEvent(action='PLAYER_UNSOLD', target_type='player', target_id=player_id),
        )

    def _pause(self, state: AuctionState, action: PauseAction, now: int) -> ActionOutcome:
        state.status = 'PAUSED'
        state.pause_message = action.message or config.DEFAULT_PAUSE_MESSAGE
        state.pause_until = now + action.duration * 1000 if action.duration else None
        # A joker claim only lives while the player is LIVE
        state.clear_joker_claim()

        return ActionOutcome(
            state=state,
            changed=True,
            audit=AuditEvent(
                action='AUCTION_PAUSED',
                target_type='auction',
                details={'message': state.pause_message, 'duration': action.duration},
            ),
        )

    def _unpause(self, state: AuctionState, action: UnpauseAction, now: int) -> ActionOutcome:
        if state.status != 'PAUSED':
            return ActionOutcome(state=state, changed=False, message='Auction is not paused')

        state.status = 'LIVE' if state.current_player_id else 'IDLE'
        state.clear_pause()

        return ActionOutcome(
            state=state,
            changed=True,
            audit=AuditEvent(action='AUCTION_RESUMED', target_type='auction'),
        )

    def _clear(self, state: AuctionState, action: ClearAction, now: int) -> ActionOutcome:
        state.status = 'IDLE'
        state.clear_active_player()
        state.clear_pause()

        return ActionOutcome(
            state=state,
            changed=True,
            audit=AuditEvent(action='AUCTION_CLEARED', target_type='auction'),
        )

    def _joker(self, state: AuctionState, action: JokerAction, now: int) -> ActionOutcome:
        if not self.settings.enable_joker_card:
            raise BadRequestError('Joker cards are disabled for this tournament')

        team = self._team(action.team_id)

        used_on = state.used_jokers.get(team.id)
        if used_on:
            used_player = self.players.get(used_on)
            name = used_player.name if used_player else used_on
            raise BadRequestError(f"{team.name} already used their joker on {name}")

        if not (state.current_player_id and state.status == 'LIVE'):
            return ActionOutcome(state=state, changed=False, message='No player is live')

        state.joker_player_id = state.current_player_id
        state.joker_requesting_team_id = team.id

        return ActionOutcome(
            state=state,
            changed=True,
            audit=AuditEvent(
                action='JOKER_USED',
                target_type='player',
                target_id=state.current_player_id,
                details={'teamId': team.id, 'teamName': team.name},
            ),
        )

    def _correct(self, state: AuctionState, action: CorrectAction, now: int) -> ActionOutcome:
        player_id = action.player_id
        from_id = action.from_team_id
        to_id = action.to_team_id

        if player_id not in state.sold_players:
            raise BadRequestError('Player is not sold')
        if player_id not in state.roster_of(from_id):
            raise BadRequestError('Player is not in the specified from team')
        if from_id == to_id:
            raise BadRequestError('Source and destination teams are the same')

        to_team = self._team(to_id, label='Target team')
        if self._roster_full(state, to_id):
            raise BadRequestError(f"{to_team.name} roster is full")

        price = state.sold_prices.get(player_id, 0)
        state.rosters[from_id] = [p for p in state.roster_of(from_id) if p != player_id]
        state.team_spent[from_id] = state.spent_by(from_id) - price
        state.rosters[to_id] = state.roster_of(to_id) + [player_id]
        state.team_spent[to_id] = state.spent_by(to_id) + price

        if state.current_player_id == player_id and state.sold_to_team_id == from_id:
            state.sold_to_team_id = to_id

        return ActionOutcome(
            state=state,
            changed=True,
            audit=AuditEvent(
                action='PLAYER_CORRECTED',
                target_type='player',
                target_id=player_id,
                details={'fromTeamId': from_id, 'toTeamId': to_id, 'price': price},
            ),
        )

    def _random(self, state: AuctionState, action: RandomAction, now: int) -> ActionOutcome:
        sold = set(state.sold_players)
        unsold = set(state.unsold_players)

        fresh = [self.players[pid] for pid in self.player_order if pid not in sold and pid not in unsold]
        pools = [
            [p for p in fresh if p.category == 'APLUS'],
            [p for p in fresh if p.category == 'BASE'],
            [self.players[pid] for pid in state.unsold_players if pid in self.players and pid not in sold],
        ]

        for pool in pools:
            if pool:
                pick = pool[int(self.rng.integers(len(pool)))]
                return ActionOutcome(
                    state=state,
                    changed=False,
                    extras={'randomPlayer': {'id': pick.id, 'name': pick.name}},
                )

        raise BadRequestError('No players available')

    def _reset(self, state: AuctionState, action: ResetAction, now: int) -> ActionOutcome:
        logger.warning(f"{self.tournament.id}: auction reset ({len(state.sold_players)} sales discarded)")
        fresh = create_initial_auction_state(timestamp=now, version=state.version)

        return ActionOutcome(
            state=fresh,
            changed=True,
            audit=AuditEvent(
                action='AUCTION_RESET',
                target_type='auction',
                details={'discardedSales': len(state.sold_players)},
            ),
        )

    def _verify(self, state: AuctionState, action: VerifyAction, now: int) -> ActionOutcome:
        return ActionOutcome(state=state, changed=False)

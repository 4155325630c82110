"""
Live auction subsystem.

Tournament configs, team and player sheets, and the roster ledger live in a
key-value store; the AuctionStateMachine applies admin actions to the ledger
under optimistic versioning, and the FastAPI app in api_server exposes it.
"""

from .models import AuctionState, Player, Team, Tournament, TournamentSettings
from .state_machine import AuctionStateMachine, ActionOutcome
from .storage import KeyValueStore, MemoryStore, RestKVStore, TournamentIndex, TournamentRepository
from .audit import AuditEvent, AuditLog
from .service import AuctionServices, TournamentService, build_services

__all__ = [
    'AuctionState',
    'Player',
    'Team',
    'Tournament',
    'TournamentSettings',
    'AuctionStateMachine',
    'ActionOutcome',
    'KeyValueStore',
    'MemoryStore',
    'RestKVStore',
    'TournamentIndex',
    'TournamentRepository',
    'AuditEvent',
    'AuditLog',
    'AuctionServices',
    'TournamentService',
    'build_services',
]

"""Shared fixtures: fake clock, in-memory store, seeded services and an API client."""

import numpy as np
import pytest
from fastapi.testclient import TestClient

from draftcast import config
from draftcast.auction.api_server import app
from draftcast.auction.auth import hash_pin
from draftcast.auction.models import (
    Player,
    Team,
    Tournament,
    TournamentSettings,
    create_initial_auction_state,
    default_expiry,
)
from draftcast.auction.service import TournamentService, build_services, get_services
from draftcast.auction.storage import MemoryStore

NOW = 1_780_000_000_000
PIN = 'S3cure!pin'
JWT_SECRET = 'test-secret-that-is-long-enough-for-hs256-signing'
TOURNAMENT_ID = 'summer-cup'


class FakeClock:
    """Epoch-ms clock that only moves when told to."""

    def __init__(self, start=NOW):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms=0, seconds=0, hours=0, days=0):
        self.now += ms + seconds * 1000 + hours * config.HOUR_MS + days * config.DAY_MS


# ------------------------------------------------------------------
# Sheets
# ------------------------------------------------------------------

def _make_teams():
    return [
        Team(id='alpha', name='Alpha Strikers', budget=50_000, color='#ff0000'),
        Team(id='bravo', name='Bravo Kings', budget=50_000, color='#00ff00'),
        Team(id='charlie', name='Charlie Riders', budget=6_000, color='#0000ff'),
    ]


def _make_players():
    specs = [
        ('p1', 'Arjun Rao', 'Batsman', 'APLUS'),
        ('p2', 'Dev Mehta', 'Bowler', 'APLUS'),
        ('p3', 'Kiran Shah', 'All-rounder', 'APLUS'),
        ('p4', 'Ravi Nair', 'WK-Batsman', 'BASE'),
        ('p5', 'Sam Iyer', 'Batsman', 'BASE'),
        ('p6', 'Vikram Das', 'Bowler', 'BASE'),
        ('p7', 'Omar Khan', 'All-rounder', 'BASE'),
        ('p8', 'Neel Joshi', 'Batsman', 'BASE'),
        ('p9', 'Hari Pillai', 'Bowler', 'BASE'),
        ('p10', 'Tej Malhotra', 'Batsman', 'BASE'),
        ('c1', 'Captain Alpha', 'Batsman', 'CAPTAIN'),
        ('c2', 'Vice Alpha', 'Bowler', 'VICE_CAPTAIN'),
    ]
    return [Player(id=pid, name=name, role=role, category=cat) for pid, name, role, cat in specs]


@pytest.fixture
def teams():
    return _make_teams()


@pytest.fixture
def players():
    return _make_players()


# ------------------------------------------------------------------
# Core collaborators
# ------------------------------------------------------------------

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryStore(clock=clock)


@pytest.fixture
def services(store, clock):
    return build_services(
        store=store,
        clock=clock,
        rng=np.random.default_rng(42),
        jwt_secret=JWT_SECRET,
    )


@pytest.fixture
def service(services):
    return TournamentService(services)


@pytest.fixture
def tournament_factory(clock):
    """Build a Tournament (not stored) with sensible defaults."""

    def make(tournament_id=TOURNAMENT_ID, **overrides):
        now = clock()
        fields = {
            'id': tournament_id,
            'name': 'Summer Cup',
            'admin_pin_hash': hash_pin(PIN, tournament_id),
            'created_at': now,
            'updated_at': now,
            'last_activity_at': now,
            'expires_at': default_expiry(now),
            'status': 'active',
            'published': True,
            'settings': TournamentSettings(),
        }
        fields.update(overrides)
        return Tournament(**fields)

    return make


@pytest.fixture
def seed(services, tournament_factory):
    """Store a tournament with its sheets, an empty ledger and index entry."""

    def make(tournament_id=TOURNAMENT_ID, teams=None, players=None, state=None, **overrides):
        tournament = tournament_factory(tournament_id, **overrides)
        repo = services.repository
        repo.save_config(tournament)
        repo.init_state(tournament_id, state or create_initial_auction_state(services.clock()))
        repo.set_teams(tournament_id, teams if teams is not None else _make_teams())
        repo.set_players(tournament_id, players if players is not None else _make_players())
        services.index.add(tournament)
        return tournament

    return make


# ------------------------------------------------------------------
# HTTP
# ------------------------------------------------------------------

@pytest.fixture
def client(services):
    app.dependency_overrides[get_services] = lambda: services
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def master_headers(services):
    """X-Master-Token header for a tournament."""

    def make(tournament_id=TOURNAMENT_ID):
        return {'X-Master-Token': services.tokens.generate_master_token(tournament_id)}

    return make

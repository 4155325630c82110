"""Tests for tournament and ledger documents."""

import pytest

from draftcast import config
from draftcast.auction.models import (
    AuctionState,
    Player,
    Team,
    Tournament,
    TournamentSettings,
    create_initial_auction_state,
    default_expiry,
)


# ── Helpers ──────────────────────────────────────────────────────────


def _sold_state():
    return AuctionState(
        status='SOLD',
        current_player_id='p1',
        sold_to_team_id='alpha',
        rosters={'alpha': ['p1'], 'bravo': ['p4']},
        sold_players=['p1', 'p4'],
        sold_prices={'p1': 3_000, 'p4': 1_000},
        team_spent={'alpha': 3_000, 'bravo': 1_000},
        version=4,
    )


class TestAuctionStateSerialization:
    def test_round_trip_keeps_every_field(self):
        state = _sold_state()
        state.unsold_players = ['p7']
        state.used_jokers = {'bravo': 'p4'}
        state.bidding_durations = {'p1': 42}

        restored = AuctionState.from_dict(state.to_dict())

        assert restored == state

    def test_older_documents_are_back_filled(self):
        legacy = {
            'status': 'IDLE',
            'currentPlayerId': None,
            'soldToTeamId': None,
            'rosters': {'alpha': ['p1']},
            'soldPlayers': ['p1'],
            'soldPrices': {'p1': 2_500},
            'teamSpent': {'alpha': 2_500},
            'lastUpdate': 123,
        }

        state = AuctionState.from_dict(legacy)

        assert state.unsold_players == []
        assert state.used_jokers == {}
        assert state.bidding_durations == {}
        assert state.joker_player_id is None
        assert state.version == 0
        state.validate(team_size=8)

    def test_camel_case_keys(self):
        data = _sold_state().to_dict()
        assert data['soldToTeamId'] == 'alpha'
        assert data['teamSpent'] == {'alpha': 3_000, 'bravo': 1_000}
        assert data['version'] == 4

    def test_copy_is_deep(self):
        state = _sold_state()
        clone = state.copy()
        clone.rosters['alpha'].append('p9')
        assert state.rosters['alpha'] == ['p1']


class TestAuctionStateValidate:
    def test_valid_ledger_passes(self):
        _sold_state().validate(team_size=8)

    def test_player_on_two_rosters(self):
        state = _sold_state()
        state.rosters['bravo'].append('p1')
        with pytest.raises(ValueError, match='multiple rosters'):
            state.validate()

    def test_sold_list_must_match_rosters(self):
        state = _sold_state()
        state.sold_players.append('p9')
        with pytest.raises(ValueError, match='soldPlayers'):
            state.validate()

    def test_spend_mismatch(self):
        state = _sold_state()
        state.team_spent['alpha'] = 2_000
        with pytest.raises(ValueError, match='Spend mismatch'):
            state.validate()

    def test_roster_limit(self):
        state = AuctionState(
            rosters={'alpha': ['a', 'b', 'c']},
            sold_players=['a', 'b', 'c'],
            sold_prices={'a': 100, 'b': 100, 'c': 100},
            team_spent={'alpha': 300},
        )
        state.validate(team_size=5)
        with pytest.raises(ValueError, match='exceeds'):
            state.validate(team_size=4)

    def test_sold_and_unsold_overlap(self):
        state = _sold_state()
        state.unsold_players = ['p4']
        with pytest.raises(ValueError, match='both sold and unsold'):
            state.validate()

    def test_joker_claim_requires_live(self):
        state = create_initial_auction_state(timestamp=0)
        state.joker_player_id = 'p1'
        state.joker_requesting_team_id = 'alpha'
        with pytest.raises(ValueError, match='Joker'):
            state.validate()

        state.status = 'LIVE'
        state.validate()

    def test_unknown_status(self):
        state = create_initial_auction_state(timestamp=0)
        state.status = 'BIDDING'
        with pytest.raises(ValueError):
            state.validate()


class TestClearHelpers:
    def test_clear_active_player_drops_joker_claim(self):
        state = AuctionState(
            status='LIVE',
            current_player_id='p1',
            joker_player_id='p1',
            joker_requesting_team_id='alpha',
            auction_start_time=10,
        )
        state.clear_active_player()
        assert state.current_player_id is None
        assert state.auction_start_time is None
        assert state.joker_player_id is None
        assert state.joker_requesting_team_id is None


class TestTournament:
    def test_round_trip(self):
        tournament = Tournament(
            id='summer-cup',
            name='Summer Cup',
            admin_pin_hash='abc',
            created_at=1,
            updated_at=2,
            last_activity_at=3,
            expires_at=default_expiry(1),
            settings=TournamentSettings(team_size=10, custom_rules='No wides'),
            theme={'primaryColor': '#112233', 'secondaryColor': '#445566'},
        )
        assert Tournament.from_dict(tournament.to_dict()) == tournament

    def test_public_dict_hides_pin_hash(self):
        tournament = Tournament(
            id='t1x', name='Test', admin_pin_hash='secret-hash',
            created_at=1, updated_at=1, last_activity_at=1, expires_at=2,
        )
        public = tournament.to_public_dict()
        assert 'adminPinHash' not in public
        assert 'lastActivityAt' not in public
        assert public['id'] == 't1x'

    def test_settings_defaults_back_filled(self):
        settings = TournamentSettings.from_dict({'teamSize': 10, 'basePrices': {'APLUS': 4_000}})
        assert settings.team_size == 10
        assert settings.base_prices == {'APLUS': 4_000, 'BASE': config.DEFAULT_BASE_PRICES['BASE']}
        assert settings.roster_limit == 8

    def test_default_expiry_is_ninety_days(self):
        assert default_expiry(0) == 90 * config.DAY_MS


class TestSheets:
    def test_team_round_trip(self):
        team = Team(id='alpha', name='Alpha', budget=100, color='#ff0000', captain_id='c1')
        assert Team.from_dict(team.to_dict()) == team
        assert team.to_dict()['captainId'] == 'c1'

    def test_player_round_trip(self):
        player = Player(id='p1', name='Arjun', role='Batsman', category='APLUS', profile_url='https://x.io/p1')
        assert Player.from_dict(player.to_dict()) == player
        assert player.to_dict()['profileUrl'] == 'https://x.io/p1'

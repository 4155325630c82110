"""Tests for PIN hashing, tokens and credential checks."""

import jwt

from draftcast import config
from draftcast.auction.auth import (
    Credentials,
    TokenService,
    authorize,
    extract_credentials,
    hash_pin,
    resolve_jwt_secret,
    verify_pin_hash,
)

SECRET = 'another-test-secret-with-plenty-of-length'
PIN = 'S3cure!pin'


class TestPinHash:
    def test_salted_per_tournament(self):
        assert hash_pin(PIN, 'cup-one') != hash_pin(PIN, 'cup-two')
        assert len(hash_pin(PIN, 'cup-one')) == 64

    def test_verify(self):
        stored = hash_pin(PIN, 'cup-one')
        assert verify_pin_hash(PIN, 'cup-one', stored)
        assert not verify_pin_hash('wrong-pin', 'cup-one', stored)
        assert not verify_pin_hash(PIN, 'cup-two', stored)


class TestTokenService:
    def test_master_token_round_trip(self, clock):
        tokens = TokenService(SECRET, clock=clock)
        payload = tokens.verify_master_token(tokens.generate_master_token('cup-one'))

        assert payload['tournamentId'] == 'cup-one'
        assert payload['type'] == 'master'
        assert payload['iss'] == config.JWT_ISSUER

    def test_session_token_carries_session_id(self, clock):
        tokens = TokenService(SECRET, clock=clock)
        payload = tokens.verify_session_token(tokens.generate_session_token('cup-one'))
        assert len(payload['sessionId']) == 32

    def test_type_must_match(self, clock):
        tokens = TokenService(SECRET, clock=clock)
        assert tokens.verify_session_token(tokens.generate_master_token('cup-one')) is None
        assert tokens.verify_master_token(tokens.generate_session_token('cup-one')) is None

    def test_session_token_expires_after_a_day(self, clock):
        tokens = TokenService(SECRET, clock=clock)
        token = tokens.generate_session_token('cup-one')

        clock.advance(hours=23)
        assert tokens.verify_session_token(token) is not None
        clock.advance(hours=1)
        assert tokens.verify_session_token(token) is None

    def test_wrong_secret(self, clock):
        token = TokenService(SECRET, clock=clock).generate_master_token('cup-one')
        assert TokenService(SECRET + '-other', clock=clock).verify_master_token(token) is None

    def test_wrong_issuer(self, clock):
        now = clock() // 1000
        token = jwt.encode(
            {'tournamentId': 'cup-one', 'type': 'master', 'sub': 'cup-one', 'iss': 'someone-else',
             'iat': now, 'exp': now + 3600},
            SECRET,
            algorithm='HS256',
        )
        assert TokenService(SECRET, clock=clock).verify_master_token(token) is None

    def test_garbage(self, clock):
        assert TokenService(SECRET, clock=clock).verify_master_token('not-a-jwt') is None

    def test_fallback_secret_when_unset(self):
        assert resolve_jwt_secret('') == config.JWT_FALLBACK_SECRET
        assert resolve_jwt_secret(SECRET) == SECRET


class TestExtractCredentials:
    def test_all_sources(self):
        creds = extract_credentials(
            {'authorization': 'Bearer abc', 'x-master-token': 'mst'},
            {'pin': PIN},
        )
        assert creds == Credentials(pin=PIN, master_token='mst', session_token='abc')

    def test_nothing(self):
        creds = extract_credentials({}, None)
        assert not creds.present()

    def test_non_string_pin_ignored(self):
        assert extract_credentials({}, {'pin': 1234}).pin is None


class TestAuthorize:
    def test_pin(self, clock, tournament_factory):
        tournament = tournament_factory('cup-one')
        tokens = TokenService(SECRET, clock=clock)

        result = authorize(tournament, Credentials(pin=PIN), tokens)
        assert result.authorized
        assert result.token_type == 'pin'

        assert not authorize(tournament, Credentials(pin='nope!nope'), tokens).authorized

    def test_session_token_for_other_tournament_rejected(self, clock, tournament_factory):
        tokens = TokenService(SECRET, clock=clock)
        token = tokens.generate_session_token('cup-two')

        result = authorize(tournament_factory('cup-one'), Credentials(session_token=token), tokens)
        assert not result.authorized
        assert result.reason == 'Invalid credentials'

    def test_session_takes_precedence(self, clock, tournament_factory):
        tokens = TokenService(SECRET, clock=clock)
        creds = Credentials(
            session_token=tokens.generate_session_token('cup-one'),
            master_token=tokens.generate_master_token('cup-one'),
        )
        result = authorize(tournament_factory('cup-one'), creds, tokens)
        assert result.token_type == 'session'
        assert result.session_id

    def test_falls_through_to_master(self, clock, tournament_factory):
        tokens = TokenService(SECRET, clock=clock)
        creds = Credentials(session_token='stale', master_token=tokens.generate_master_token('cup-one'))
        assert authorize(tournament_factory('cup-one'), creds, tokens).token_type == 'master'

    def test_no_credentials(self, clock, tournament_factory):
        result = authorize(tournament_factory('cup-one'), Credentials(), TokenService(SECRET, clock=clock))
        assert not result.authorized
        assert result.reason == 'No credentials provided'

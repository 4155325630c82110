"""Tests for the lifecycle gate, status transitions and retention rules."""

import pytest

from draftcast import config
from draftcast.auction.errors import BadRequestError, ForbiddenError, NotFoundError
from draftcast.auction.lifecycle import (
    can_transition_to,
    ensure_mutable,
    ensure_readable,
    extend_expiry,
    get_lifecycle,
    should_archive,
    should_delete,
    tournaments_to_archive,
    tournaments_to_delete,
    transition_status,
)

NOW = 1_780_000_000_000
DAY = config.DAY_MS


class TestGetLifecycle:
    def test_active_far_from_expiry(self):
        info = get_lifecycle('active', NOW + 30 * DAY, NOW)
        assert info.state == 'active'
        assert info.can_modify is True
        assert info.days_remaining == 30
        assert info.warning is None

    def test_readonly_inside_window(self):
        info = get_lifecycle('active', NOW + 5 * DAY, NOW)
        assert info.state == 'readonly'
        assert info.can_modify is False
        assert '5 days' in info.warning

    def test_window_boundary_rounds_up(self):
        # 10 days and 1 ms away rounds up to 11 days: still active
        assert get_lifecycle('active', NOW + 10 * DAY + 1, NOW).state == 'active'
        assert get_lifecycle('active', NOW + 10 * DAY, NOW).state == 'readonly'

    def test_expired_after_expiry(self):
        info = get_lifecycle('active', NOW - 1, NOW)
        assert info.state == 'expired'
        assert info.days_remaining == 0

    def test_expiry_instant_is_readonly_not_expired(self):
        info = get_lifecycle('active', NOW, NOW)
        assert info.state == 'readonly'
        assert info.days_remaining == 0

    def test_archived_is_readonly(self):
        info = get_lifecycle('archived', NOW + 60 * DAY, NOW)
        assert info.state == 'readonly'
        assert 'archived' in info.warning

    def test_to_dict(self):
        data = get_lifecycle('active', NOW + 5 * DAY, NOW).to_dict()
        assert data['status'] == 'readonly'
        assert data['daysRemaining'] == 5
        assert data['canModify'] is False
        assert 'warning' in data


class TestGates:
    def test_readonly_tournament_rejects_mutation_but_allows_reads(self, tournament_factory):
        tournament = tournament_factory(expires_at=NOW + 5 * DAY)

        assert ensure_readable(tournament, NOW).state == 'readonly'
        with pytest.raises(ForbiddenError) as exc:
            ensure_mutable(tournament, NOW)
        assert exc.value.code == 'TOURNAMENT_READONLY'

    def test_expired_is_not_found(self, tournament_factory):
        tournament = tournament_factory(expires_at=NOW - DAY)
        with pytest.raises(NotFoundError):
            ensure_readable(tournament, NOW)
        with pytest.raises(NotFoundError):
            ensure_mutable(tournament, NOW)


class TestTransitions:
    @pytest.mark.parametrize('current,target', [
        ('draft', 'lobby'), ('lobby', 'active'), ('lobby', 'draft'),
        ('active', 'completed'), ('active', 'lobby'), ('completed', 'archived'),
    ])
    def test_allowed(self, current, target):
        assert can_transition_to(current, target)

    @pytest.mark.parametrize('current,target', [
        ('draft', 'active'), ('draft', 'completed'), ('completed', 'active'),
        ('archived', 'draft'), ('active', 'active'),
    ])
    def test_rejected(self, current, target):
        assert not can_transition_to(current, target)

    def test_completing_stamps_completed_at(self, tournament_factory):
        tournament = tournament_factory(status='active')
        transition_status(tournament, 'completed', NOW + 5)
        assert tournament.status == 'completed'
        assert tournament.completed_at == NOW + 5
        assert tournament.updated_at == NOW + 5

    def test_invalid_transition_raises(self, tournament_factory):
        tournament = tournament_factory(status='draft')
        with pytest.raises(BadRequestError) as exc:
            transition_status(tournament, 'completed', NOW)
        assert exc.value.code == 'INVALID_TRANSITION'
        assert tournament.status == 'draft'


class TestRetention:
    def test_archive_after_a_week_completed(self, tournament_factory):
        recent = tournament_factory('recent', status='completed', completed_at=NOW - 3 * DAY)
        old = tournament_factory('old-one', status='completed', completed_at=NOW - 8 * DAY)
        active = tournament_factory('live-one', status='active')

        assert not should_archive(recent, NOW)
        assert should_archive(old, NOW)
        assert tournaments_to_archive([recent, old, active], NOW) == ['old-one']

    def test_idle_draft_is_deleted(self, tournament_factory):
        idle = tournament_factory('idle-draft', status='draft', last_activity_at=NOW - 25 * config.HOUR_MS)
        fresh = tournament_factory('new-draft', status='draft', last_activity_at=NOW - config.HOUR_MS)
        assert should_delete(idle, NOW)
        assert not should_delete(fresh, NOW)

    def test_expired_is_deleted(self, tournament_factory):
        expired = tournament_factory('gone', expires_at=NOW - 1)
        assert tournaments_to_delete([expired], NOW) == ['gone']

    def test_archived_past_retention_is_deleted(self, tournament_factory):
        archived = tournament_factory(
            'archived-one',
            status='archived',
            archived=True,
            archive_date=NOW - 91 * DAY,
            expires_at=NOW + 30 * DAY,
        )
        assert should_delete(archived, NOW)


class TestExtendExpiry:
    def test_extends(self, tournament_factory):
        tournament = tournament_factory(expires_at=NOW + 5 * DAY)
        new_expiry = extend_expiry(tournament, 30, NOW)
        assert new_expiry == NOW + 35 * DAY
        assert get_lifecycle(tournament.status, new_expiry, NOW).state == 'active'

    def test_archived_cannot_extend(self, tournament_factory):
        tournament = tournament_factory(archived=True, status='archived')
        with pytest.raises(BadRequestError):
            extend_expiry(tournament, 30, NOW)

    def test_days_must_be_positive(self, tournament_factory):
        with pytest.raises(BadRequestError):
            extend_expiry(tournament_factory(), 0, NOW)

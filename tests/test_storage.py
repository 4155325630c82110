"""Tests for the key-value stores and repositories."""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from draftcast.auction.errors import ConflictError, ServiceUnavailableError
from draftcast.auction.models import create_initial_auction_state
from draftcast.auction.storage import (
    RestKVStore,
    TournamentIndex,
    TournamentRepository,
)


class TestMemoryStore:
    def test_values_are_copied_through_json(self, store):
        doc = {'a': [1, 2]}
        store.set('k', doc)
        doc['a'].append(3)
        assert store.get('k') == {'a': [1, 2]}

    def test_ttl_expiry(self, store, clock):
        store.set('k', 'v', ttl=10)
        assert store.ttl('k') == 10
        clock.advance(seconds=9)
        assert store.get('k') == 'v'
        clock.advance(seconds=1)
        assert store.get('k') is None
        assert store.ttl('k') == -2

    def test_ttl_without_expiry(self, store):
        store.set('k', 1)
        assert store.ttl('k') == -1

    def test_incr_and_expire(self, store, clock):
        assert store.incr('counter') == 1
        assert store.incr('counter') == 2
        assert store.expire('counter', 5)
        clock.advance(seconds=5)
        assert store.incr('counter') == 1

    def test_delete_counts_live_keys(self, store):
        store.set('a', 1)
        store.set('b', 2)
        assert store.delete('a', 'b', 'missing') == 2

    def test_sets(self, store):
        assert store.sadd('s', 'x', 'y') == 2
        assert store.sadd('s', 'y') == 0
        assert store.smembers('s') == ['x', 'y']
        assert store.srem('s', 'x', 'z') == 1
        assert store.smembers('s') == ['y']

    def test_lists_are_newest_first(self, store):
        for i in range(5):
            store.lpush('l', i)
        assert store.lrange('l', 0, -1) == [4, 3, 2, 1, 0]
        store.ltrim('l', 0, 2)
        assert store.lrange('l', 0, -1) == [4, 3, 2]
        assert store.llen('l') == 3
        assert store.lrange('l', 1, 1) == [3]

    def test_keys_glob(self, store):
        store.set('tournament:a:config', {})
        store.set('tournament:b:config', {})
        store.set('tournament:a:state', {})
        assert store.keys('tournament:*:config') == ['tournament:a:config', 'tournament:b:config']

    def test_set_if_field(self, store):
        assert store.set_if_field('doc', {'version': 1}, 'version', None)
        assert not store.set_if_field('doc', {'version': 2}, 'version', 0)
        assert store.set_if_field('doc', {'version': 2}, 'version', 1)
        assert store.get('doc') == {'version': 2}

    def test_set_if_field_missing_value(self, store):
        store.set('doc', {'status': 'IDLE'})
        assert not store.set_if_field('doc', {'version': 1}, 'version', 0)
        assert store.set_if_field('doc', {'version': 1}, 'version', 0, missing=0)
        assert store.get('doc') == {'version': 1}


class TestRepositoryState:
    def test_save_bumps_version(self, store):
        repo = TournamentRepository(store)
        repo.init_state('cup', create_initial_auction_state(timestamp=0))

        state = repo.get_state('cup')
        saved = repo.save_state('cup', state, state.version)

        assert saved.version == 1
        assert repo.get_state('cup').version == 1

    def test_second_writer_with_same_version_conflicts(self, store):
        repo = TournamentRepository(store)
        repo.init_state('cup', create_initial_auction_state(timestamp=0))

        first = repo.get_state('cup')
        second = repo.get_state('cup')
        first.status = 'LIVE'
        second.status = 'PAUSED'

        repo.save_state('cup', first, 0)
        with pytest.raises(ConflictError) as exc:
            repo.save_state('cup', second, 0)

        assert exc.value.code == 'STATE_VERSION_CONFLICT'
        assert exc.value.status_code == 409
        assert repo.get_state('cup').status == 'LIVE'

    def test_first_write_without_stored_state(self, store):
        repo = TournamentRepository(store)
        saved = repo.save_state('cup', create_initial_auction_state(timestamp=0), None)
        assert saved.version == 1

    def test_stored_ledger_without_version(self, store):
        repo = TournamentRepository(store)
        legacy = create_initial_auction_state(timestamp=0).to_dict()
        del legacy['version']
        store.set('tournament:cup:state', legacy)

        state = repo.get_state('cup')
        assert state.version == 0

        saved = repo.save_state('cup', state, state.version)
        assert saved.version == 1
        assert repo.get_state('cup').version == 1

    def test_delete_data_keeps_config(self, services, seed):
        seed()
        repo = services.repository
        repo.delete_data('summer-cup')

        assert repo.get_config('summer-cup') is not None
        assert repo.get_state('summer-cup') is None
        assert repo.get_teams('summer-cup') == []

    def test_full_data_snapshot(self, services, seed):
        seed()
        data = services.repository.full_data('summer-cup')
        assert data['config']['id'] == 'summer-cup'
        assert len(data['teams']) == 3
        assert len(data['players']) == 12
        assert data['state']['status'] == 'IDLE'


class TestTournamentIndex:
    def test_add_and_publish(self, store, tournament_factory, clock):
        index = TournamentIndex(store)
        older = tournament_factory('older-cup', published=True)
        clock.advance(ms=1000)
        newer = tournament_factory('newer-cup', published=True)
        hidden = tournament_factory('hidden-cup', published=False)

        for t in (older, newer, hidden):
            index.add(t)

        assert store.smembers(TournamentIndex.ALL_KEY) == ['hidden-cup', 'newer-cup', 'older-cup']
        assert [e['id'] for e in index.list_published()] == ['newer-cup', 'older-cup']

        index.set_published('hidden-cup', True)
        assert index.get_entry('hidden-cup')['published'] is True
        assert 'hidden-cup' in [e['id'] for e in index.list_published()]

    def test_remove(self, store, tournament_factory):
        index = TournamentIndex(store)
        index.add(tournament_factory('gone-cup'))
        index.remove('gone-cup')
        assert store.smembers(TournamentIndex.ALL_KEY) == []
        assert index.list_published() == []
        assert index.get_entry('gone-cup') is None

    def test_entry_hides_private_fields(self, tournament_factory):
        entry = TournamentIndex.build_entry(tournament_factory())
        assert 'adminPinHash' not in entry
        assert entry['id'] == 'summer-cup'


# ── REST store ───────────────────────────────────────────────────────


def _response(result=None, error=None):
    response = MagicMock()
    response.raise_for_status.return_value = None
    payload = {'result': result}
    if error:
        payload = {'error': error}
    response.json.return_value = payload
    return response


@pytest.fixture
def rest_store():
    kv = RestKVStore('https://kv.example.com/', 'token-123', max_retries=2)
    kv.session = MagicMock()
    return kv


class TestRestKVStore:
    def test_auth_header_and_url(self):
        kv = RestKVStore('https://kv.example.com/', 'token-123')
        assert kv.session.headers['Authorization'] == 'Bearer token-123'
        assert kv.base_url == 'https://kv.example.com'

    def test_get_decodes_json(self, rest_store):
        rest_store.session.post.return_value = _response(json.dumps({'a': 1}))

        assert rest_store.get('k') == {'a': 1}
        rest_store.session.post.assert_called_once_with(
            'https://kv.example.com', json=['GET', 'k'], timeout=rest_store.timeout
        )

    def test_get_missing(self, rest_store):
        rest_store.session.post.return_value = _response(None)
        assert rest_store.get('k') is None

    def test_set_with_ttl(self, rest_store):
        rest_store.session.post.return_value = _response('OK')
        rest_store.set('k', {'a': 1}, ttl=60)
        args = rest_store.session.post.call_args
        assert args.kwargs['json'] == ['SET', 'k', '{"a": 1}', 'EX', '60']

    def test_set_if_field_uses_eval(self, rest_store):
        rest_store.session.post.return_value = _response(1)

        assert rest_store.set_if_field('doc', {'version': 3}, 'version', 2)

        command = rest_store.session.post.call_args.kwargs['json']
        assert command[0] == 'EVAL'
        assert command[2:5] == ['1', 'doc', '{"version": 3}']
        assert command[5:] == ['version', '2', 'null']

    def test_set_if_field_rejected(self, rest_store):
        rest_store.session.post.return_value = _response(0)
        assert not rest_store.set_if_field('doc', {'version': 3}, 'version', None)
        assert rest_store.session.post.call_args.kwargs['json'][-2] == 'null'

    def test_set_if_field_sends_missing_default(self, rest_store):
        rest_store.session.post.return_value = _response(1)
        assert rest_store.set_if_field('doc', {'version': 1}, 'version', 0, missing=0)
        assert rest_store.session.post.call_args.kwargs['json'][-2:] == ['0', '0']

    def test_endpoint_error(self, rest_store):
        rest_store.session.post.return_value = _response(error='WRONGTYPE')
        with pytest.raises(ServiceUnavailableError):
            rest_store.get('k')

    @patch('draftcast.auction.storage.time.sleep')
    def test_retries_then_gives_up(self, mock_sleep, rest_store):
        rest_store.session.post.side_effect = requests.ConnectionError('down')

        with pytest.raises(ServiceUnavailableError):
            rest_store.get('k')

        assert rest_store.session.post.call_count == 2
        assert mock_sleep.call_count == 1

    @patch('draftcast.auction.storage.time.sleep')
    def test_retry_recovers(self, mock_sleep, rest_store):
        rest_store.session.post.side_effect = [requests.Timeout('slow'), _response('"v"')]
        assert rest_store.get('k') == 'v'

    def test_lrange_decodes_items(self, rest_store):
        rest_store.session.post.return_value = _response(['"b"', '"a"'])
        assert rest_store.lrange('l', 0, -1) == ['b', 'a']

"""Tests for the audit log."""

from unittest.mock import MagicMock

import pandas as pd

from draftcast import config
from draftcast.auction.audit import AuditEvent, AuditLog, AuditQuery


def _record_sales(log, clock, count=3):
    for i in range(count):
        log.record('cup', AuditEvent(
            action='PLAYER_SOLD',
            target_type='player',
            target_id=f'p{i}',
            details={'soldPrice': 1000 * (i + 1), 'teamId': 'alpha'},
        ))
        clock.advance(seconds=1)


class TestRecord:
    def test_entries_are_newest_first(self, store, clock):
        log = AuditLog(store, clock=clock)
        _record_sales(log, clock)

        entries = log.query('cup')

        assert [e['targetId'] for e in entries] == ['p2', 'p1', 'p0']
        assert entries[0]['tournamentId'] == 'cup'
        assert entries[0]['actorType'] == 'admin'
        assert 'userAgent' not in entries[0]

    def test_entries_expire_after_retention(self, store, clock):
        log = AuditLog(store, clock=clock)
        _record_sales(log, clock, count=1)

        clock.advance(days=config.AUDIT_RETENTION_DAYS)
        assert log.query('cup') == []

    def test_list_is_capped(self, store, clock, monkeypatch):
        monkeypatch.setattr(config, 'MAX_AUDIT_ENTRIES_PER_TOURNAMENT', 2)
        log = AuditLog(store, clock=clock)
        _record_sales(log, clock, count=4)
        assert store.llen('audit:cup:list') == 2

    def test_store_failure_is_swallowed(self, clock):
        broken = MagicMock()
        broken.set.side_effect = RuntimeError('store down')
        entry_id = AuditLog(broken, clock=clock).record('cup', AuditEvent(action='PLAYER_SOLD'))
        assert entry_id.startswith(str(clock()))


class TestQuery:
    def test_filters(self, store, clock):
        log = AuditLog(store, clock=clock)
        start = clock()
        _record_sales(log, clock)
        log.record('cup', AuditEvent(action='AUTH_FAILED', actor_type='public'))

        assert len(log.query('cup', AuditQuery(action='PLAYER_SOLD'))) == 3
        assert len(log.query('cup', AuditQuery(actor_type='public'))) == 1
        assert len(log.query('cup', AuditQuery(start_time=start + 1000, end_time=start + 1000))) == 1

    def test_paging(self, store, clock):
        log = AuditLog(store, clock=clock)
        _record_sales(log, clock, count=5)
        page = log.query('cup', AuditQuery(limit=2, offset=1))
        assert [e['targetId'] for e in page] == ['p3', 'p2']

    def test_stats(self, store, clock):
        log = AuditLog(store, clock=clock)
        _record_sales(log, clock, count=2)
        log.record('cup', AuditEvent(action='AUCTION_PAUSED'))

        stats = log.stats('cup')
        assert stats['totalEntries'] == 3
        assert stats['actionCounts'] == {'PLAYER_SOLD': 2, 'AUCTION_PAUSED': 1}


class TestExport:
    def test_dataframe_is_oldest_first_with_flattened_details(self, store, clock):
        log = AuditLog(store, clock=clock)
        _record_sales(log, clock)

        df = log.to_dataframe('cup')

        assert list(df['targetId']) == ['p0', 'p1', 'p2']
        assert list(df['details.soldPrice']) == [1000, 2000, 3000]
        assert pd.api.types.is_datetime64_any_dtype(df['time'])

    def test_empty_dataframe(self, store, clock):
        df = AuditLog(store, clock=clock).to_dataframe('nobody')
        assert df.empty
        assert 'action' in df.columns

    def test_export_csv(self, store, clock, tmp_path):
        log = AuditLog(store, clock=clock)
        _record_sales(log, clock)

        path = log.export_csv('cup', tmp_path / 'exports' / 'audit.csv')

        exported = pd.read_csv(path)
        assert len(exported) == 3
        assert list(exported['action'].unique()) == ['PLAYER_SOLD']

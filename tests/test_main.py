"""Tests for the command-line entry point."""

from unittest.mock import patch

import pandas as pd
import pytest

from draftcast import config
from draftcast.auction.audit import AuditEvent
from draftcast.auction.service import set_services
from draftcast.main import main, parse_arguments

NOW = 1_780_000_000_000


@pytest.fixture
def installed(services):
    set_services(services)
    yield services
    set_services(None)


class TestParseArguments:
    def test_serve_defaults(self):
        args = parse_arguments(['serve'])
        assert args.command == 'serve'
        assert args.host == config.API_HOST
        assert args.port == config.API_PORT
        assert not args.reload

    def test_sweep_apply(self):
        assert parse_arguments(['--verbose', 'sweep', '--apply']).apply

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_arguments([])


class TestCommands:
    def test_sweep_dry_run(self, installed, seed):
        seed('done-cup', status='completed', completed_at=NOW - 8 * config.DAY_MS)

        assert main(['sweep']) == 0
        assert installed.repository.get_config('done-cup').archived is False

    def test_sweep_apply(self, installed, seed):
        seed('done-cup', status='completed', completed_at=NOW - 8 * config.DAY_MS)

        assert main(['sweep', '--apply']) == 0
        assert installed.repository.get_config('done-cup').archived is True

    def test_export_audit(self, installed, seed, tmp_path):
        seed()
        installed.audit.record('summer-cup', AuditEvent(action='PLAYER_UNSOLD', target_id='p3'))
        output = tmp_path / 'out.csv'

        assert main(['export-audit', 'summer-cup', '--output', str(output)]) == 0
        assert list(pd.read_csv(output)['targetId']) == ['p3']

    def test_export_unknown_tournament_fails(self, installed, tmp_path):
        assert main(['export-audit', 'ghost-cup', '--output', str(tmp_path / 'x.csv')]) == 1

    @patch('uvicorn.run')
    def test_serve(self, mock_run):
        assert main(['serve', '--port', '9001']) == 0
        mock_run.assert_called_once()
        assert mock_run.call_args.args[0] == 'draftcast.auction.api_server:app'
        assert mock_run.call_args.kwargs['port'] == 9001

    def test_status(self, installed, seed):
        seed(expires_at=NOW + 4 * config.DAY_MS)
        assert main(['status', 'summer-cup']) == 0

    def test_extend(self, installed, seed):
        tournament = seed()

        assert main(['extend', 'summer-cup', '--days', '10']) == 0
        assert installed.repository.get_config('summer-cup').expires_at == tournament.expires_at + 10 * config.DAY_MS

    def test_extend_rejects_zero_days(self, installed, seed):
        seed()
        assert main(['extend', 'summer-cup', '--days', '0']) == 1

#!/usr/bin/env python3
"""
Tests for the thctl command line
"""

import json

import pytest
from click.testing import CliRunner
from unittest.mock import MagicMock, patch

from thctl import __version__
from thctl.cli import cli, describe_error
from thctl.config import ClientConfig
from thctl.exceptions import (
    AuthenticationError,
    ConfigError,
    NodeConnectionError,
    NotFoundError,
    RPCTimeoutError,
)
from thctl.models import Deadline, MinerAggregate, MinerPower, ProvingDeadline, SectorPenalty, SectorRecord


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def client():
    """Mocked LotusClient returned by the CLI's client factory"""
    mock_client = MagicMock()
    mock_client.url = "http://127.0.0.1:1234/rpc/v0"
    mock_client.config = ClientConfig()
    with patch('thctl.cli.load_config', return_value=ClientConfig()), \
            patch('thctl.cli.LotusClient') as mock_class:
        mock_class.return_value.__enter__.return_value = mock_client
        yield mock_client


def payloads(output):
    return [item["payload"] for item in json.loads(output)["data"]]


class TestSectorsCommands:
    def test_sectors_list(self, runner, client):
        client.list_sectors.return_value = [SectorRecord(sector_number=1), SectorRecord(sector_number=2)]

        result = runner.invoke(cli, ['fil', 'sectors', 'list', '--miner', 'f01234'])

        assert result.exit_code == 0
        assert [p["sector_number"] for p in payloads(result.output)] == [1, 2]
        assert client.list_sectors.call_args[0][1] == 'f01234'
        assert client.list_sectors.call_args[1] == {"only_active": False}

    def test_sectors_list_active(self, runner, client):
        client.list_sectors.return_value = []

        result = runner.invoke(cli, ['fil', 'sectors', 'list', '--miner', 'f01234', '--active'])

        assert result.exit_code == 0
        assert client.list_sectors.call_args[1] == {"only_active": True}

    def test_sectors_info(self, runner, client):
        client.get_sector_info.return_value = SectorRecord(sector_number=7, initial_pledge="100")

        result = runner.invoke(cli, ['fil', 'sectors', 'info', '--miner', 'f01234', '7'])

        assert result.exit_code == 0
        assert payloads(result.output)[0]["initial_pledge"] == "100"

    def test_sectors_penalty_adds_fil_amount(self, runner, client):
        client.get_sector_penalty.return_value = SectorPenalty(
            miner_id="f01234", sector_number=7, penalty="1000000000000000000", current_epoch=5000, activation=10,
        )

        result = runner.invoke(cli, ['fil', 'sectors', 'penalty', '--miner', 'f01234', '7'])

        assert result.exit_code == 0
        assert payloads(result.output)[0]["penalty_fil"] == "1.000000 FIL"

    def test_sector_number_must_be_non_negative(self, runner, client):
        result = runner.invoke(cli, ['fil', 'sectors', 'info', '--miner', 'f01234', '-1'])
        assert result.exit_code == 2

    def test_miner_option_required(self, runner, client):
        result = runner.invoke(cli, ['fil', 'sectors', 'list'])
        assert result.exit_code == 2


class TestMinerCommands:
    def test_miner_info(self, runner, client):
        aggregate = MinerAggregate(miner_id="f01234", owner="f0100", errors=["deadlines: unavailable"])
        with patch('thctl.cli.MinerInfoAggregator') as mock_aggregator:
            mock_aggregator.return_value.aggregate.return_value = aggregate
            result = runner.invoke(cli, ['fil', 'miner', 'info', 'f01234'])

        assert result.exit_code == 0
        response = json.loads(result.output)
        assert response["data"][0]["payload"]["owner"] == "f0100"
        assert response["meta"]["errors"] == ["deadlines: unavailable"]

    def test_miner_power(self, runner, client):
        client.get_miner_power.return_value = MinerPower(raw_byte_power="1024", network_raw_byte_power="4096")

        result = runner.invoke(cli, ['fil', 'miner', 'power', 'f01234'])

        assert result.exit_code == 0
        payload = payloads(result.output)[0]
        assert payload["network_power_share"] == "25.0000%"
        assert payload["raw_byte_power_human"] == "1.00 KiB"

    def test_miner_balance(self, runner, client):
        client.get_miner_available_balance.return_value = "2500000000000000000"

        result = runner.invoke(cli, ['fil', 'miner', 'balance', 'f01234'])

        assert result.exit_code == 0
        assert payloads(result.output)[0]["available_balance_fil"] == "2.500000 FIL"

    def test_miner_deadline(self, runner, client):
        client.get_miner_proving_deadline.return_value = ProvingDeadline(index=3, current_epoch=100)
        client.get_miner_deadlines.return_value = [Deadline(index=0, post_submissions=[0, 1])]

        result = runner.invoke(cli, ['fil', 'miner', 'deadline', 'f01234'])

        assert result.exit_code == 0
        payload = payloads(result.output)[0]
        assert payload["proving_deadline"]["index"] == 3
        assert payload["deadlines"] == [{"index": 0, "post_submissions": 2, "disputable_proof_count": 0}]

    def test_table_output(self, runner, client):
        client.get_miner_available_balance.return_value = "0"

        result = runner.invoke(cli, ['-o', 'table', 'fil', 'miner', 'balance', 'f01234'])

        assert result.exit_code == 0
        assert "available_balance_fil" in result.output

    def test_yaml_output(self, runner, client):
        client.get_miner_available_balance.return_value = "0"

        result = runner.invoke(cli, ['--output', 'yaml', 'fil', 'miner', 'balance', 'f01234'])

        assert result.exit_code == 0
        assert "operation: miner.balance" in result.output


class TestErrorMessages:
    """Failures are reported with distinct messages and exit status 1"""

    @pytest.mark.parametrize("error,message", [
        (NotFoundError("actor not found"), "miner f01234 not found"),
        (AuthenticationError("unauthorized"), "authentication failed"),
        (NodeConnectionError("refused"), "could not reach node"),
        (RPCTimeoutError("slow"), "request timed out"),
    ])
    def test_classified_failures(self, runner, client, error, message):
        client.get_miner_power.side_effect = error

        result = runner.invoke(cli, ['fil', 'miner', 'power', 'f01234'])

        assert result.exit_code == 1
        assert message in result.output

    def test_timeout_renders_partial_data(self, runner, client):
        partial = MinerAggregate(miner_id="f01234", owner="f0100")
        with patch('thctl.cli.MinerInfoAggregator') as mock_aggregator:
            mock_aggregator.return_value.aggregate.side_effect = RPCTimeoutError("deadline exceeded", partial=partial)
            result = runner.invoke(cli, ['--quiet', 'fil', 'miner', 'info', 'f01234'])

        assert result.exit_code == 1
        response = json.loads(result.output)
        assert response["meta"]["status"] == "partial"
        assert response["data"][0]["payload"]["owner"] == "f0100"

    def test_config_error(self, runner):
        with patch('thctl.cli.load_config', side_effect=ConfigError("invalid duration: 'soon'")):
            result = runner.invoke(cli, ['fil', 'miner', 'power', 'f01234'])

        assert result.exit_code == 1
        assert "configuration error" in result.output

    def test_describe_error_for_sectors(self):
        assert describe_error(NotFoundError("x"), "sector 7 of miner f01234") == "sector 7 of miner f01234 not found"


class TestDoctor:
    def test_all_checks_pass(self, runner, tmp_path):
        env_file = tmp_path / ".thctl.env"
        config = ClientConfig(endpoint="http://lotus:1234/rpc/v0", auth_token="token")
        with patch('thctl.cli.find_env_file', return_value=env_file), \
                patch('thctl.cli.load_config', return_value=config), \
                patch('thctl.cli.LotusClient') as mock_class:
            mock_client = mock_class.return_value.__enter__.return_value
            mock_client.version.return_value = {"Version": "1.28.0"}
            result = runner.invoke(cli, ['doctor'])

        assert result.exit_code == 0
        assert "LOTUS_API_TOKEN is configured" in result.output
        assert "1.28.0" in result.output
        assert "all checks passed" in result.output

    def test_missing_token_and_unreachable_node(self, runner):
        with patch('thctl.cli.find_env_file', return_value=None), \
                patch('thctl.cli.load_config', return_value=ClientConfig()), \
                patch('thctl.cli.LotusClient') as mock_class:
            mock_class.return_value.__enter__.return_value.version.side_effect = NodeConnectionError("refused")
            result = runner.invoke(cli, ['doctor'])

        assert result.exit_code == 1
        assert "not found" in result.output
        assert "LOTUS_API_TOKEN is not set" in result.output
        assert "could not reach node" in result.output


def test_version(runner):
    result = runner.invoke(cli, ['--version'])
    assert result.exit_code == 0
    assert __version__ in result.output

#!/usr/bin/env python3
"""
Tests for the standard response envelope and renderers
"""

import json

import pytest
import yaml

from thctl.models import MinerPower, SectorRecord
from thctl.response_format import (
    error_response,
    format_json,
    format_table,
    render,
    standard_response,
    to_plain,
)


class TestStandardResponse:
    def test_envelope(self):
        response = standard_response([SectorRecord(sector_number=1)], operation="sectors.info", data_type="sector")

        assert response["meta"]["status"] == "success"
        assert response["meta"]["operation"] == "sectors.info"
        assert response["meta"]["total_items"] == 1
        assert response["data"][0]["type"] == "sector"
        assert response["data"][0]["payload"]["sector_number"] == 1
        assert "data_type" not in response["meta"]

    def test_error_response(self):
        response = error_response("miner f01234 not found", operation="miner.info")

        assert response["data"] == []
        assert response["meta"]["status"] == "error"
        assert response["meta"]["error"] == "miner f01234 not found"

    def test_to_plain(self):
        assert to_plain(MinerPower(has_min_power=True))["has_min_power"] is True
        assert to_plain((1, 2)) == [1, 2]


class TestRender:
    @pytest.fixture
    def response(self):
        return standard_response([{"miner_id": "f01234", "available_balance": "1"}], operation="miner.balance")

    def test_json(self, response):
        assert json.loads(render(response, "json"))["data"][0]["payload"]["miner_id"] == "f01234"
        assert "\n" in render(response, "json", pretty=True)
        assert "\n" not in format_json(response)

    def test_yaml(self, response):
        assert yaml.safe_load(render(response, "yaml"))["meta"]["operation"] == "miner.balance"

    def test_table_single_record(self, response):
        table = render(response, "table")

        assert table.splitlines()[0].split() == ["FIELD", "VALUE"]
        assert "miner_id" in table
        assert "f01234" in table
        assert "\x1b[" not in table

    def test_table_error(self):
        assert render(error_response("boom"), "table") == "Error: boom"

    def test_table_lists_unavailable(self):
        response = standard_response([{"a": 1}], errors=["deadlines: unavailable"])
        assert "Unavailable: deadlines: unavailable" in render(response, "table")

    def test_unknown_format(self, response):
        with pytest.raises(ValueError):
            render(response, "xml")


class TestFormatTable:
    def test_rows(self):
        table = format_table([{"sector_number": 1, "expiration": 900}, {"sector_number": 2, "expiration": 950}])
        lines = table.splitlines()

        assert lines[0].split() == ["SECTOR_NUMBER", "EXPIRATION"]
        assert lines[-2].split() == ["1", "900"]
        assert lines[-1].split() == ["2", "950"]

    def test_dataclass_records(self):
        table = format_table([SectorRecord(sector_number=1), SectorRecord(sector_number=2)])

        assert "SECTOR" in table
        assert len(table.splitlines()) >= 4

    def test_brackets_are_not_markup(self):
        table = format_table([{"note": "[bold]raw[/bold]"}])

        assert "[bold]raw[/bold]" in table

    def test_nested_values_are_flattened(self):
        table = format_table([{"proving": {"index": 3}, "flags": [1, 2], "ok": True}])

        assert "proving.index" in table
        assert "1, 2" in table
        assert "yes" in table

    def test_empty(self):
        assert format_table([]) == "No results"

import json
import logging

import pytest

from folioledger.model import FeedJsonParser


def test_parse_payload_full_object():
    bundle, report = FeedJsonParser().parse_payload(
        {
            "base_currency": "cad",
            "transactions": [{"id": "a"}, "oops", {"id": "b"}],
            "currencies": {"usd": {"2024-01-02": 1.35}},
            "portfolio": {"2024-01-02": 1000},
            "positions": [{"symbol": "ABC"}],
        }
    )
    assert bundle.base_currency == "CAD"
    assert [r["id"] for r in bundle.transactions] == ["a", "b"]
    assert bundle.currencies == {"USD": {"2024-01-02": 1.35}}
    assert bundle.portfolio == {"2024-01-02": 1000}
    assert len(bundle.positions) == 1
    assert len(report.issues) == 1
    assert report.issues[0].index == 1
    assert not report.has_errors


def test_bare_list_is_read_as_transactions():
    bundle, report = FeedJsonParser().parse_payload([{"id": "a"}])
    assert bundle.transactions == [{"id": "a"}]
    assert bundle.base_currency is None
    assert report.issues == []


def test_wrong_section_shapes_are_reported_not_fatal():
    bundle, report = FeedJsonParser().parse_payload(
        {"transactions": {"id": "a"}, "currencies": {"usd": [1, 2]}}
    )
    assert bundle.transactions == []
    assert bundle.currencies == {}
    assert len(report.issues) == 2


def test_scalar_payload_is_rejected():
    with pytest.raises(ValueError, match="JSON object or array"):
        FeedJsonParser().parse_payload(42)


def test_parse_file_invalid_json(tmp_path):
    path = tmp_path / "feed.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError, match="not valid JSON"):
        FeedJsonParser().parse_file(path)


def test_parse_file_reads_json(tmp_path):
    path = tmp_path / "feed.json"
    path.write_text(json.dumps({"transactions": [{"id": "x"}]}), encoding="utf-8")
    bundle, _ = FeedJsonParser().parse_file(path)
    assert bundle.transactions[0]["id"] == "x"


def test_report_log_with(caplog):
    _, report = FeedJsonParser().parse_payload({"transactions": [1]})
    log = logging.getLogger("feedtest")
    with caplog.at_level(logging.WARNING):
        report.log_with(log)
    assert "record 0" in caplog.text

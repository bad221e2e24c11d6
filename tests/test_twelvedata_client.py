import asyncio

import aiohttp
import pytest

from sma_scanner.clients.twelvedata_client import (
    ErrorShape,
    FlatMapShape,
    SingleSymbolShape,
    WrappedMapShape,
    chunk,
    decode_response,
    extract_series,
    fetch_daily_series_bulk,
    parse_close,
)
from sma_scanner.core.errors import ResponseDecodeError

from conftest import FakeResponse, FakeSession, td_values


def _entry(closes, **kw):
    return {"status": "ok", "values": td_values(closes, **kw)}


# ---------------------------
# decode_response
# ---------------------------
def test_decode_flat_map():
    payload = {"AAPL": _entry([1, 2]), "MSFT": _entry([3, 4])}
    decoded = decode_response(payload, ["AAPL", "MSFT"])
    assert isinstance(decoded, FlatMapShape)
    assert set(decoded.entries) == {"AAPL", "MSFT"}


def test_decode_wrapped_map():
    payload = {"status": "ok", "data": {"AAPL": _entry([1, 2])}}
    decoded = decode_response(payload, ["AAPL"])
    assert isinstance(decoded, WrappedMapShape)
    assert decoded.status == "ok"
    assert "AAPL" in decoded.entries


def test_decode_single_symbol():
    payload = {"meta": {"symbol": "AAPL"}, "values": td_values([1, 2]), "status": "ok"}
    decoded = decode_response(payload, ["IGNORED"])
    assert isinstance(decoded, SingleSymbolShape)
    assert decoded.symbol == "AAPL"


def test_decode_single_symbol_falls_back_to_requested_symbol():
    payload = {"values": td_values([1, 2])}
    decoded = decode_response(payload, ["MSFT"])
    assert isinstance(decoded, SingleSymbolShape)
    assert decoded.symbol == "MSFT"


def test_decode_global_error():
    decoded = decode_response({"status": "error", "code": 429, "message": "rate limited"}, ["AAPL"])
    assert decoded == ErrorShape(message="rate limited", code=429)


def test_decode_rejects_non_object():
    with pytest.raises(ResponseDecodeError):
        decode_response(["AAPL"], ["AAPL"])


# ---------------------------
# extract_series
# ---------------------------
def test_extract_normalizes_oldest_first_values():
    entry = _entry([1, 2, 3], latest_first=False)
    series = extract_series("AAPL", entry)
    assert series.closes_latest_first == [3.0, 2.0, 1.0]
    assert series.as_of == "2024-01-03"


def test_extract_truncates_datetime_to_date():
    entry = {"values": [{"datetime": "2025-02-21 12:51:00", "close": "10.5"}]}
    assert extract_series("AAPL", entry).as_of == "2025-02-21"


def test_extract_skips_unparseable_closes():
    entry = {"values": [
        {"datetime": "2024-01-03", "close": "abc"},
        {"datetime": "2024-01-02", "close": "2.5"},
        {"datetime": "2024-01-01", "close": None},
    ]}
    assert extract_series("AAPL", entry).closes_latest_first == [2.5]


@pytest.mark.parametrize("entry", [
    None,
    "nope",
    {"status": "error", "message": "symbol not found"},
    {"status": "ok"},
    {"status": "ok", "values": []},
    {"values": [{"datetime": "2024-01-01", "close": "NaN"}, {"datetime": "2024-01-02", "close": "x"}]},
])
def test_extract_excludes_unusable_entries(entry):
    assert extract_series("AAPL", entry) is None


def test_parse_close():
    assert parse_close("1,234.5") == 1234.5
    assert parse_close(3) == 3.0
    assert parse_close("inf") is None
    assert parse_close("") is None
    assert parse_close(True) is None


def test_chunk():
    assert chunk(["a", "b", "c"], 2) == [["a", "b"], ["c"]]
    assert chunk([], 50) == []
    with pytest.raises(ValueError):
        chunk(["a"], 0)


# ---------------------------
# fetch_daily_series_bulk
# ---------------------------
def test_bulk_fetch_batches_and_params():
    def handler(url, params):
        symbols = params["symbol"].split(",")
        return FakeResponse(payload={s: _entry([1, 2, 3]) for s in symbols})

    session = FakeSession(handler)
    out = asyncio.run(fetch_daily_series_bulk(
        session, "key", ["A", "B", "C", "D", "E"], outputsize=210, end_date="2024-06-03", chunk_size=2,
    ))

    assert list(out) == ["A", "B", "C", "D", "E"]
    assert [c["params"]["symbol"] for c in session.calls] == ["A,B", "C,D", "E"]
    params = session.calls[0]["params"]
    assert params["interval"] == "1day"
    assert params["outputsize"] == "210"
    assert params["apikey"] == "key"
    assert params["format"] == "JSON"
    assert params["end_date"] == "2024-06-03"
    assert session.calls[0]["timeout"].total == 20.0


def test_bulk_fetch_omits_end_date_when_not_given():
    session = FakeSession(lambda url, params: FakeResponse(payload={"A": _entry([1])}))
    asyncio.run(fetch_daily_series_bulk(session, "key", ["A"], outputsize=5))
    assert "end_date" not in session.calls[0]["params"]


def test_failed_batch_leaves_other_batches():
    def handler(url, params):
        if params["symbol"] == "A,B":
            return FakeResponse(payload={"status": "error", "code": 429, "message": "too many"})
        if params["symbol"] == "C,D":
            return FakeResponse(exc=asyncio.TimeoutError())
        if params["symbol"] == "E,F":
            return FakeResponse(exc=aiohttp.ClientConnectionError("reset"))
        return FakeResponse(payload={"status": "ok", "data": {"G": _entry([1, 2])}})

    session = FakeSession(handler)
    out = asyncio.run(fetch_daily_series_bulk(session, "key", list("ABCDEFG"), outputsize=5, chunk_size=2))
    assert list(out) == ["G"]


def test_bad_json_is_a_batch_failure():
    session = FakeSession(lambda url, params: FakeResponse(payload=ValueError("not json")))
    assert asyncio.run(fetch_daily_series_bulk(session, "key", ["A"], outputsize=5)) == {}


def test_per_symbol_error_excluded():
    payload = {"A": {"status": "error", "message": "not found"}, "B": _entry([5, 6])}
    session = FakeSession(lambda url, params: FakeResponse(payload=payload))
    out = asyncio.run(fetch_daily_series_bulk(session, "key", ["A", "B"], outputsize=5))
    assert list(out) == ["B"]
    assert out["B"].closes_latest_first == [6.0, 5.0]


def test_single_symbol_batch():
    payload = {"meta": {"symbol": "Z"}, "values": td_values([1, 2]), "status": "ok"}
    session = FakeSession(lambda url, params: FakeResponse(payload=payload))
    out = asyncio.run(fetch_daily_series_bulk(session, "key", ["Z"], outputsize=5))
    assert out["Z"].as_of == "2024-01-02"


def test_api_key_required():
    session = FakeSession(lambda url, params: FakeResponse(payload={}))
    with pytest.raises(ValueError):
        asyncio.run(fetch_daily_series_bulk(session, "", ["A"], outputsize=5))

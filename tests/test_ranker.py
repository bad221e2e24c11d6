from sma_scanner.core.ranker import rank_symbol


def test_emits_record_when_close_below_sma():
    # latest 8, SMA(2) = 9, SMA(4) = 9.5
    closes = [8, 10, 9, 11]
    out = rank_symbol("AAA", closes, [2, 4])

    assert set(out) == {2, 4}
    rec = out[2]
    assert rec.symbol == "AAA"
    assert rec.close == 8
    assert rec.sma == 9
    assert rec.pct_below == (8 - 9) / 9


def test_sign_invariant():
    closes = [5.0, 7.0, 6.0, 9.0, 10.0, 4.0]
    for rec in rank_symbol("AAA", closes, [2, 3, 5]).values():
        assert rec.close < rec.sma
        assert rec.pct_below < 0


def test_no_record_when_close_at_or_above_sma():
    assert rank_symbol("AAA", [10, 10, 10], [2, 3]) == {}
    assert rank_symbol("AAA", [12, 10, 8], [2, 3]) == {}


def test_symbol_can_land_in_some_windows_only():
    # SMA(2) = 10.5 (below), SMA(4) = 9.25 (above)
    closes = [10, 11, 8, 8]
    assert list(rank_symbol("AAA", closes, [2, 4])) == [2]


def test_zero_sma_is_skipped():
    # SMA(2) = 0 even though close < sma would otherwise be checked
    assert rank_symbol("AAA", [-1, 1, 5], [2]) == {}


def test_window_longer_than_history_is_skipped():
    assert rank_symbol("AAA", [1, 5, 5], [2, 20]).keys() == {2}


def test_min_history_gate_drops_symbol_entirely():
    closes = [1.0] + [10.0] * 203
    assert rank_symbol("AAA", closes, [20, 50, 120, 200], min_history=205) == {}
    assert set(rank_symbol("AAA", closes + [10.0], [20, 50, 120, 200], min_history=205)) == {20, 50, 120, 200}


def test_empty_history():
    assert rank_symbol("AAA", [], [20]) == {}

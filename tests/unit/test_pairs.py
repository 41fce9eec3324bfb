"""
Unit Tests for Trading Pair Validation

These tests verify that ensure_pair():
- Normalizes case, whitespace and separators
- Rejects malformed pairs with a format hint
- Rejects well-formed but unsupported pairs with a distinct error
- Is idempotent on its own output

Run with:
    pytest tests/unit/test_pairs.py -v
"""

import pytest

from core.errors import UserError
from core.pairs import (
    ALLOWED_PAIRS,
    base_currency,
    ensure_pair,
    is_jpy_pair,
    normalize_pair,
)


class TestNormalizePair:
    """Tests for normalize_pair"""

    @pytest.mark.parametrize("raw, expected", [
        ("btc_jpy", "btc_jpy"),
        ("BTC/JPY", "btc_jpy"),
        ("  eth-jpy ", "eth_jpy"),
        ("Xrp_Jpy", "xrp_jpy"),
    ])
    def test_normalizes_separators_and_case(self, raw, expected):
        """Verify slashes and dashes become underscores, case is lowered"""
        assert normalize_pair(raw) == expected

    def test_none_and_blank_become_none(self):
        """Verify empty input normalizes to None"""
        assert normalize_pair(None) is None
        assert normalize_pair("   ") is None


class TestEnsurePair:
    """Tests for ensure_pair"""

    def test_valid_pair_is_accepted(self):
        """Verify a supported pair passes with its normalized form"""
        check = ensure_pair("BTC/JPY")

        assert check.ok is True
        assert check.pair == "btc_jpy"
        assert check.error is None

    @pytest.mark.parametrize("raw", [None, "", "btc", "btcjpy", "b_jpy", "btc_jpy_x", "btc1_jpy", 123])
    def test_malformed_pair_is_rejected(self, raw):
        """Verify shape failures return a malformed error with an example"""
        check = ensure_pair(raw)

        assert check.ok is False
        assert check.error_kind == "malformed"
        assert "btc_jpy" in check.error

    def test_unsupported_pair_is_rejected_distinctly(self):
        """Verify well-formed pairs outside the allow-list get a different error"""
        check = ensure_pair("foo_jpy")

        assert check.ok is False
        assert check.error_kind == "unsupported"
        assert "foo_jpy" in check.error
        assert "eth_jpy" in check.error
        assert check.error != ensure_pair("foo").error

    def test_validation_is_idempotent(self):
        """Verify re-validating the normalized pair gives the same result"""
        first = ensure_pair(" Eth-JPY ")
        second = ensure_pair(first.pair)

        assert second == first

    def test_every_allowed_pair_validates(self):
        """Verify the allow-list only contains well-formed pairs"""
        for pair in ALLOWED_PAIRS:
            assert ensure_pair(pair).pair == pair

    def test_two_letter_base_is_malformed(self):
        """Verify the shape rule wins over upstream listings such as op_jpy"""
        check = ensure_pair("op_jpy")

        assert check.error_kind == "malformed"
        assert "op_jpy" not in ALLOWED_PAIRS

    def test_raise_for_error(self):
        """Verify raise_for_error returns the pair or raises UserError"""
        assert ensure_pair("btc_jpy").raise_for_error() == "btc_jpy"

        with pytest.raises(UserError, match="unsupported pair"):
            ensure_pair("abc_usd").raise_for_error()


class TestPairHelpers:
    """Tests for pair helper functions"""

    def test_is_jpy_pair_uses_suffix(self):
        assert is_jpy_pair("btc_jpy") is True
        assert is_jpy_pair("eth_btc") is False

    def test_base_currency(self):
        assert base_currency("mona_jpy") == "MONA"

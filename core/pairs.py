"""
Trading Pair Validation

bitbank identifies markets as "{base}_{quote}" in lowercase (e.g. "btc_jpy").
User input is normalized ("BTC/JPY", " eth-jpy " -> "eth_jpy"), checked
against the shape regex and then against ALLOWED_PAIRS.

Validation never raises for bad input: ensure_pair() returns a PairCheck
that callers branch on before any request is made.

Maintenance:
    ALLOWED_PAIRS is curated by hand from the active pairs listed at
    https://github.com/bitbankinc/bitbank-api-docs/blob/master/pairs.md
    New listings and delistings require editing this set.
"""

import re
from typing import Any, FrozenSet, Optional
from pydantic import BaseModel

from core.errors import UserError


PAIR_PATTERN = re.compile(r"^[a-z]{3,6}_[a-z]{3,6}$")

ALLOWED_PAIRS: FrozenSet[str] = frozenset({
    # Majors
    "btc_jpy",
    "eth_jpy",
    "xrp_jpy",
    "ltc_jpy",
    "bcc_jpy",
    # Altcoins
    "mona_jpy",
    "xlm_jpy",
    "qtum_jpy",
    "bat_jpy",
    "omg_jpy",
    "xym_jpy",
    "link_jpy",
    "boba_jpy",
    "enj_jpy",
    "dot_jpy",
    "doge_jpy",
    "astr_jpy",
    "ada_jpy",
    "avax_jpy",
    "axs_jpy",
    "flr_jpy",
    "sand_jpy",
    "gala_jpy",
    "ape_jpy",
    "chz_jpy",
    "oas_jpy",
    "mana_jpy",
    "grt_jpy",
    "bnb_jpy",
    "dai_jpy",
    # op_jpy is listed upstream but its 2-letter base fails PAIR_PATTERN
    "arb_jpy",
    "klay_jpy",
    "imx_jpy",
    "mask_jpy",
    "pol_jpy",     # formerly matic_jpy
    "sol_jpy",
    "cyber_jpy",
    "render_jpy",  # formerly rndr_jpy
    "trx_jpy",
    "lpt_jpy",
    "atom_jpy",
    "sui_jpy",
    "sky_jpy",     # formerly mkr_jpy
})

SUPPORTED_EXAMPLES = ("btc_jpy", "eth_jpy", "xrp_jpy")


class PairCheck(BaseModel):
    """
    Tagged result of a pair validation.

    Exactly one of `pair` (ok) or `error` (not ok) is set. `error_kind` is
    "malformed" for shape failures and "unsupported" for allow-list misses.
    """

    ok: bool
    pair: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    def raise_for_error(self) -> str:
        """Return the validated pair, or raise UserError carrying the message."""
        if not self.ok:
            raise UserError(self.error)
        return self.pair


def normalize_pair(raw: Any) -> Optional[str]:
    """
    Normalize a user-supplied pair string.

    Example:
        >>> normalize_pair(" BTC/JPY ")
        'btc_jpy'
    """
    if raw is None:
        return None
    norm = re.sub(r"[/-]", "_", str(raw).strip().lower())
    return norm or None


def ensure_pair(raw: Any) -> PairCheck:
    """
    Validate and normalize a trading pair.

    Returns:
        PairCheck with ok=True and the normalized pair, or ok=False with a
        corrective message.

    Example:
        >>> ensure_pair("ETH-JPY").pair
        'eth_jpy'
        >>> ensure_pair("btc").error_kind
        'malformed'
        >>> ensure_pair("foo_jpy").error_kind
        'unsupported'
    """
    norm = normalize_pair(raw)
    if not norm or not PAIR_PATTERN.match(norm):
        return PairCheck(
            ok=False,
            error=f"pair '{raw}' is invalid (expected format e.g. btc_jpy)",
            error_kind="malformed",
        )
    if norm not in ALLOWED_PAIRS:
        return PairCheck(
            ok=False,
            error=f"unsupported pair: '{norm}' (supported e.g. {', '.join(SUPPORTED_EXAMPLES)})",
            error_kind="unsupported",
        )
    return PairCheck(ok=True, pair=norm)


def is_jpy_pair(pair: str) -> bool:
    """True when the quote currency is JPY (decided by suffix)."""
    return pair.endswith("_jpy")


def base_currency(pair: str) -> str:
    """Upper-cased base currency, e.g. "btc_jpy" -> "BTC"."""
    return pair.split("_")[0].upper()

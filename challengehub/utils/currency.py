"""
Currency Utilities

Static exchange-rate table used to normalize prize amounts to USD.
Rates are approximate: units of each currency per 1 USD.
"""
from typing import Dict, Optional

DEFAULT_CURRENCY = "USD"

EXCHANGE_RATES_TO_USD: Dict[str, float] = {
    "USD": 1,
    "EUR": 0.92,
    "GBP": 0.79,
    "ZAR": 18.5,
    "RWF": 1_400,
    "KES": 154,
    "NGN": 1_600,
    "GHS": 16,
    "UGX": 3_750,
    "TZS": 2_650,
}


def _rate(currency: Optional[str]) -> float:
    code = (currency or DEFAULT_CURRENCY).upper()
    return EXCHANGE_RATES_TO_USD.get(code, EXCHANGE_RATES_TO_USD[DEFAULT_CURRENCY])


def convert_to_usd(amount: float, currency: Optional[str] = DEFAULT_CURRENCY) -> float:
    """Convert an amount to USD. Unsupported codes use the default currency's rate."""
    return amount / _rate(currency)


def convert_from_usd(amount_usd: float, currency: Optional[str] = DEFAULT_CURRENCY) -> float:
    """Convert a USD amount to another currency."""
    return amount_usd * _rate(currency)

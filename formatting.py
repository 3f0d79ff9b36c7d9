"""Number formatting that matches what the browser dashboard showed.

`format_locale` follows en-US ``Number.prototype.toLocaleString()`` (grouping,
up to three fraction digits, no trailing zeros) and `format_fixed` follows
``Number.prototype.toFixed`` including its NaN/Infinity spellings.

Both round the exact binary value half away from zero, as JavaScript does,
rather than Python's round-half-even.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Context, Decimal

PRICE_LOADING = "Loading..."
PREDICTION_LOADING = "Loading prediction..."
PRICE_ERROR = "Error loading data"
PREDICTION_ERROR = "Error loading prediction"
IMAGE_MISSING_ALT = "Image not available"

# Wide enough for every finite float64 written out in full
_DECIMAL_CONTEXT = Context(prec=400, rounding=ROUND_HALF_UP)

# toFixed switches to exponent notation at this magnitude
_TO_FIXED_LIMIT = 1e21


def _round_half_up(value: float, digits: int) -> Decimal:
    return Decimal(value).quantize(Decimal(1).scaleb(-digits), context=_DECIMAL_CONTEXT)


def format_locale(value: float, max_fraction_digits: int = 3) -> str:
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "∞" if value > 0 else "-∞"

    text = f"{_round_half_up(value, max_fraction_digits):,f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_fixed(value: float, digits: int = 2) -> str:
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if abs(value) >= _TO_FIXED_LIMIT:
        # Same shortest round-trip digits and e+NN spelling as String(x)
        return repr(value)
    if value == 0:
        # (-0).toFixed(2) is "0.00"
        value = 0.0
    return f"{_round_half_up(value, digits):f}"


def format_price(value: float) -> str:
    """Current price text, e.g. ``$64,321.5``."""
    return f"${format_locale(value)}"


def format_prediction(value: float) -> str:
    return f"Price Prediction for next 24hrs: ${format_fixed(value, 2)} (based on Linear Regression)"


def image_alt(asset: str) -> str:
    return f"{asset} logo"

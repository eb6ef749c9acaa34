"""Text normalization and locale-aware parsing."""

from finbot.text.normalizer import (
    format_br_date,
    format_brl,
    normalize,
    parse_br_date,
    parse_brl_float,
    similarity,
)

__all__ = [
    "format_br_date",
    "format_brl",
    "normalize",
    "parse_br_date",
    "parse_brl_float",
    "similarity",
]

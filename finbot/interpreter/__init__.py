"""Natural-language transaction interpretation."""

from finbot.interpreter.dictionary import (
    CANONICAL_ACCOUNT_WEIGHT,
    HARD_CODED_TYPES,
    CategoryMatch,
    KeywordDictionary,
    KeywordMatch,
)
from finbot.interpreter.interpreter import (
    TransactionInterpreter,
    derive_description,
    extract_amount,
    extract_installments,
)

__all__ = [
    "CANONICAL_ACCOUNT_WEIGHT",
    "HARD_CODED_TYPES",
    "CategoryMatch",
    "KeywordDictionary",
    "KeywordMatch",
    "TransactionInterpreter",
    "derive_description",
    "extract_amount",
    "extract_installments",
]

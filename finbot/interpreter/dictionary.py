"""
Keyword Dictionary Lookup

Classifies a normalized message against the keyword tables configured in
the dictionary sheet: transaction type, payment method, account and
category/subcategory.

MATCHING RULE:
- A rule is a candidate only if its normalized keyword occurs literally
  inside the normalized message.
- Candidates are scored with similarity(message, keyword); since the
  keyword is a substring, longer keywords score higher.
- Account names typed exactly as configured (canonical) beat aliases:
  their score is multiplied by CANONICAL_ACCOUNT_WEIGHT.
- Category rules may be restricted to one transaction type.

A lookup never raises. "Nothing matched" is a normal result carrying
NOT_IDENTIFIED and an empty keyword.
"""

import re
from typing import Optional

from pydantic import BaseModel

from finbot.models.finance import (
    NOT_IDENTIFIED,
    Account,
    KeywordRule,
    RuleType,
    TransactionKind,
)
from finbot.text.normalizer import normalize, similarity


CANONICAL_ACCOUNT_WEIGHT = 1.5

# Literal phrases that decide the type before the configurable table
HARD_CODED_TYPES = {
    "recebi": TransactionKind.INCOME,
    "ganhei": TransactionKind.INCOME,
    "gastei": TransactionKind.EXPENSE,
    "paguei": TransactionKind.EXPENSE,
    "comprei": TransactionKind.EXPENSE,
    "transferi": TransactionKind.TRANSFER,
}


class KeywordMatch(BaseModel):
    """Best rule found for one lookup."""

    value: str = NOT_IDENTIFIED
    keyword: str = ""
    score: float = 0.0
    type_constraint: Optional[str] = None

    @property
    def identified(self) -> bool:
        return self.value != NOT_IDENTIFIED


class CategoryMatch(BaseModel):
    category: str = NOT_IDENTIFIED
    subcategory: str = NOT_IDENTIFIED
    keyword: str = ""

    @property
    def identified(self) -> bool:
        return self.category != NOT_IDENTIFIED


class KeywordDictionary:
    """
    Lookup tables for one interpretation.

    Built from the dictionary rules and the configured accounts; each
    account's own name becomes a canonical account rule.
    """

    def __init__(self, rules: list[KeywordRule], accounts: list[Account]):
        self._rules: dict[RuleType, list[KeywordRule]] = {t: [] for t in RuleType}
        for rule in rules:
            self._rules[rule.rule_type].append(rule)

        self._accounts = {a.normalized_name: a for a in accounts}
        canonical = [
            KeywordRule(
                rule_type=RuleType.ACCOUNT,
                keyword=account.name,
                interpreted_value=account.name,
                canonical=True,
            )
            for account in accounts
        ]
        self._rules[RuleType.ACCOUNT] = canonical + self._rules[RuleType.ACCOUNT]

    @property
    def accounts(self) -> dict[str, Account]:
        return self._accounts

    def best_match(
        self,
        message: str,
        rule_type: RuleType,
        transaction_type: Optional[TransactionKind] = None,
    ) -> KeywordMatch:
        """
        Best-scoring rule of one type whose keyword occurs in message.

        Args:
            message: Already-normalized text
            rule_type: Which table to search
            transaction_type: Detected type, enforced on category rules
        """
        best = KeywordMatch()
        for rule in self._rules[rule_type]:
            keyword = rule.normalized_keyword
            if not keyword or keyword not in message:
                continue

            if rule_type == RuleType.CATEGORY and rule.type_constraint:
                if transaction_type is None:
                    continue
                if normalize(rule.type_constraint) != normalize(transaction_type.value):
                    continue

            score = similarity(message, keyword)
            if rule.canonical:
                score *= CANONICAL_ACCOUNT_WEIGHT

            if score > best.score:
                best = KeywordMatch(
                    value=rule.interpreted_value,
                    keyword=keyword,
                    score=score,
                    type_constraint=rule.type_constraint,
                )
        return best

    def detect_type(self, message: str) -> tuple[Optional[TransactionKind], str]:
        """
        Transaction type and the keyword that decided it.

        Hard-coded literals win over the table; among literals the one
        appearing first in the message wins.
        """
        earliest = None
        for literal, kind in HARD_CODED_TYPES.items():
            found = re.search(rf"\b{literal}\b", message)
            if found and (earliest is None or found.start() < earliest[0]):
                earliest = (found.start(), kind, literal)
        if earliest is not None:
            return earliest[1], earliest[2]

        match = self.best_match(message, RuleType.TRANSACTION_TYPE)
        if not match.identified:
            return None, ""
        return TransactionKind.from_label(match.value), match.keyword

    def match_account(self, message: str) -> tuple[Optional[Account], str]:
        """Configured account named (or aliased) in the message."""
        match = self.best_match(message, RuleType.ACCOUNT)
        if not match.identified:
            return None, ""
        account = self._accounts.get(normalize(match.value))
        if account is None:
            # Alias pointing at an account that is not configured
            return None, ""
        return account, match.keyword

    def match_payment_method(self, message: str) -> KeywordMatch:
        return self.best_match(message, RuleType.PAYMENT_METHOD)

    def match_category(
        self,
        message: str,
        transaction_type: TransactionKind,
    ) -> CategoryMatch:
        match = self.best_match(message, RuleType.CATEGORY, transaction_type)
        if not match.identified:
            return CategoryMatch()
        category, _, subcategory = match.value.partition(">")
        return CategoryMatch(
            category=category.strip() or NOT_IDENTIFIED,
            subcategory=subcategory.strip() or NOT_IDENTIFIED,
            keyword=match.keyword,
        )

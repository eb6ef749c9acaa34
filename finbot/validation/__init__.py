"""Validation for user edits and interpreted candidates."""

from finbot.validation.validator import EditValidator, review_candidate

__all__ = ["EditValidator", "review_candidate"]

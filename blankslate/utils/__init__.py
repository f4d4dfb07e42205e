"""
Utils package
"""

from .money import format_money, parse_amount, parse_amount_or_zero, to_money, CENT, ZERO
from .months import month_key, month_range, next_month, previous_month
from .normalization import clean_label, normalize_account_token, normalize_payee, UNCATEGORIZED

__all__ = [
    "format_money",
    "parse_amount",
    "parse_amount_or_zero",
    "to_money",
    "CENT",
    "ZERO",
    "month_key",
    "month_range",
    "next_month",
    "previous_month",
    "clean_label",
    "normalize_account_token",
    "normalize_payee",
    "UNCATEGORIZED",
]

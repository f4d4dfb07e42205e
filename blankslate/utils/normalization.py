"""
Name normalization

Used to match a typed payee against account names and to clean up imported
text fields.
"""

import re
import unicodedata

UNCATEGORIZED = "Uncategorized"


def normalize_account_token(value: str | None) -> str:
    """
    Normalize an account name for matching

    - NFKC normalization
    - casefold
    - drop whitespace and punctuation

    Example:
        >>> normalize_account_token("Chase Sapphire (Main)")
        "chasesapphiremain"
    """
    if not value:
        return ""
    normalized = unicodedata.normalize("NFKC", value)
    normalized = normalized.casefold()
    normalized = re.sub(r"\W+", "", normalized, flags=re.UNICODE)
    return normalized


def normalize_payee(value: str | None) -> str:
    """Strip a ``"Transfer : "`` / ``"Transfer to "`` prefix and normalize the rest."""
    if not value:
        return ""
    text = re.sub(r"^\s*transfer\s*(?::|to|from)?\s*", "", value, flags=re.IGNORECASE)
    return normalize_account_token(text)


def clean_label(value: object, default: str = UNCATEGORIZED) -> str:
    """Trimmed text, or ``default`` when the value is missing or blank."""
    if value is None:
        return default
    if isinstance(value, float) and value != value:
        return default
    text = unicodedata.normalize("NFKC", str(value)).strip()
    return text or default

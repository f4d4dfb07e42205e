"""
Money helpers

- Fixed-point cents on top of ``decimal.Decimal``
- ``$1,234.56`` formatting and its exact inverse
- Left-to-right ``+``/``-`` expressions typed into amount cells
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from blankslate.errors import InvalidAmountError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

_TOKEN_RE = re.compile(
    r"\s*(?:"
    r"(?P<number>\$?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d*)?|\$?\.\d+)"
    r"|(?P<op>[+-])"
    r"|(?P<bad>\S+?)"
    r")"
)


def to_money(value: object) -> Decimal:
    """Coerce ``value`` to a cent-precision Decimal.

    Floats go through ``str`` so ``0.1`` becomes ``0.10`` and not the binary
    expansion. Non-finite values raise ``InvalidAmountError``.
    """
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, bool):
        raise InvalidAmountError(value, "booleans are not amounts")
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        return parse_amount(value)
    elif value is None:
        return ZERO
    else:
        raise InvalidAmountError(value, f"unsupported type {type(value).__name__}")
    if not amount.is_finite():
        raise InvalidAmountError(value, "not finite")
    return _to_cents(amount, value)


def _to_cents(amount: Decimal, raw: object) -> Decimal:
    # more digits than the context precision cannot be quantized
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise InvalidAmountError(raw, "out of range") from exc


def parse_amount(text: str) -> Decimal:
    """
    Parse a typed amount.

    Accepts plain decimals, formatted money (``"$1,234.56"``, ``"-$40.00"``)
    and left-to-right ``+``/``-`` chains such as ``"10+5-2.50"``.
    A single bad token fails the whole input.

    Raises:
        InvalidAmountError: the text is empty or contains anything else

    Example:
        >>> parse_amount("10+5")
        Decimal('15.00')
    """
    if text is None or not str(text).strip():
        raise InvalidAmountError(text, "empty")

    total = ZERO
    pending_sign = 1
    pending_op: str | None = "+"
    expecting_operand = True
    seen_sign = False

    for match in _TOKEN_RE.finditer(str(text).strip()):
        if match.group("bad") is not None:
            raise InvalidAmountError(text, f"unexpected {match.group('bad')!r}")
        op = match.group("op")
        number = match.group("number")
        if op is not None:
            if expecting_operand:
                # unary sign, at most one per operand
                if seen_sign:
                    raise InvalidAmountError(text, "repeated sign")
                seen_sign = True
                pending_sign = -1 if op == "-" else 1
                continue
            pending_op = op
            expecting_operand = True
            seen_sign = False
            pending_sign = 1
            continue
        if number is None:
            continue
        if not expecting_operand:
            raise InvalidAmountError(text, "missing operator")
        try:
            operand = Decimal(number.replace("$", "").replace(",", "")) * pending_sign
            total = total + operand if pending_op == "+" else total - operand
        except InvalidOperation as exc:
            raise InvalidAmountError(text, "out of range") from exc
        expecting_operand = False
        pending_op = None
        seen_sign = False
        pending_sign = 1

    if expecting_operand:
        raise InvalidAmountError(text, "dangling operator")
    return _to_cents(total, text)


def parse_amount_or_zero(text: str) -> Decimal:
    """Assignment-cell rule: invalid input means 0, never the previous value."""
    try:
        return parse_amount(text)
    except InvalidAmountError as exc:
        logger.warning("%s; using 0", exc)
        return ZERO


def format_money(value: object) -> str:
    """Render ``-$1,234.56`` style text; ``parse_amount`` reads it back exactly."""
    amount = to_money(value)
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"

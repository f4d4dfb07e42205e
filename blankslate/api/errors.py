from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException

from blankslate.errors import (
    BudgetValidationError,
    DuplicateNameError,
    FundsPresentError,
    GroupNotEmptyError,
    InvalidAmountError,
    MirrorIntegrityError,
    NotFoundError,
    ProtectedGroupError,
    ProtectedItemError,
)
from blankslate.utils.months import month_key

logger = logging.getLogger(__name__)


@contextmanager
def budget_errors() -> Iterator[None]:
    """Translate engine errors raised inside the block into HTTP errors."""
    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (DuplicateNameError, FundsPresentError, GroupNotEmptyError) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except (ProtectedGroupError, ProtectedItemError) as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except (BudgetValidationError, InvalidAmountError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except MirrorIntegrityError as exc:
        logger.error("Mirror integrity violated: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def parse_month(value: str) -> str:
    try:
        return month_key(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

"""
Per-user budget sessions

Holds one BudgetEngine per user and a lock per user. Created by the app
factory and stored on ``app.state``.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from blankslate.services.budget_engine import BudgetEngine
from blankslate.services.storage_service import BudgetStorageService

logger = logging.getLogger(__name__)


class BudgetSessionRegistry:
    def __init__(self, *, seed_defaults: bool = True, recent_limit: int = 10) -> None:
        self.seed_defaults = seed_defaults
        self.recent_limit = recent_limit
        self._engines: Dict[int, BudgetEngine] = {}
        self._locks: Dict[int, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, user_id: int) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(user_id, threading.Lock())

    def get_engine(self, user_id: int, db: Session) -> BudgetEngine:
        """Engine for ``user_id``; loaded from the database on first use.

        Callers must hold ``lock_for(user_id)``.
        """
        engine = self._engines.get(user_id)
        if engine is not None:
            return engine
        book = BudgetStorageService(db).load_book(user_id)
        engine = BudgetEngine(book, seed_defaults=book is None and self.seed_defaults, recent_limit=self.recent_limit)
        self._engines[user_id] = engine
        if book is None:
            logger.info("Created a new budget for user %s", user_id)
            self.persist(user_id, db)
        return engine

    def persist(self, user_id: int, db: Session) -> None:
        """Write the user's in-memory state; on failure the cached engine is dropped."""
        engine = self._engines.get(user_id)
        if engine is None:
            return
        try:
            BudgetStorageService(db).save_book(user_id, engine.book)
        except SQLAlchemyError:
            db.rollback()
            self.drop(user_id)
            logger.exception("Saving budget for user %s failed; it will be reloaded", user_id)
            raise

    def drop(self, user_id: int) -> None:
        self._engines.pop(user_id, None)

    def clear(self) -> None:
        self._engines.clear()

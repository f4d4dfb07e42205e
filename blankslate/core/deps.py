from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from blankslate.core.database import get_db
from blankslate import models
from blankslate.services.budget_engine import BudgetEngine
from blankslate.services.session_registry import BudgetSessionRegistry


def get_current_user(db: Session = Depends(get_db)) -> models.User:
    """Very lightweight current user resolver.

    Returns the first user (creates a demo user if none). Tests may override
    this dependency to simulate different users.
    """
    user = db.query(models.User).order_by(models.User.id).first()
    if not user:
        user = models.User(email="demo@example.com")
        db.add(user)
        db.commit()
        db.refresh(user)
    return user


def get_registry(request: Request) -> BudgetSessionRegistry:
    return request.app.state.budget_registry


@dataclass
class BudgetSession:
    engine: BudgetEngine
    user_id: int
    db: Session
    registry: BudgetSessionRegistry

    def save(self) -> None:
        self.registry.persist(self.user_id, self.db)


def get_budget_session(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    registry: BudgetSessionRegistry = Depends(get_registry),
) -> Iterator[BudgetSession]:
    """The user's engine, held under the user's lock for the whole request."""
    lock = registry.lock_for(current_user.id)
    with lock:
        engine = registry.get_engine(current_user.id, db)
        yield BudgetSession(engine=engine, user_id=current_user.id, db=db, registry=registry)

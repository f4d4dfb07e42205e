from fastapi import APIRouter, FastAPI

from .budget import router as budget_router
from .transactions import router as transactions_router

router = APIRouter()
router.include_router(budget_router)
router.include_router(transactions_router)


def register_routers(app: FastAPI) -> None:
    app.include_router(router, prefix="/api")

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import register_routers
from .core.config import Settings, settings as default_settings
from .services.session_registry import BudgetSessionRegistry


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title=settings.APP_NAME, version="0.1.0")
    app.state.budget_registry = BudgetSessionRegistry(
        seed_defaults=settings.SEED_DEFAULT_CATEGORIES,
        recent_limit=settings.RECENT_CHANGES_LIMIT,
    )

    # CORS for the budget UI
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    register_routers(app)
    return app


app = create_app()

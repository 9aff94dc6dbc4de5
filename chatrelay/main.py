from __future__ import annotations

from fastapi import FastAPI

from chatrelay.config import get_settings
from chatrelay.db import Base, engine
from chatrelay.infra.logging_config import setup_logging
from chatrelay.routers.context_router import context_router


def create_app(testing: bool = False) -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(title=settings.app_name)

    if testing or settings.is_test:
        # Migrations are not run against throwaway databases.
        import chatrelay.models  # noqa: F401

        Base.metadata.create_all(bind=engine)

    app.include_router(context_router)
    return app


app = create_app()

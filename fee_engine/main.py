from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fee_engine.api.v1.fee_registry.router import router as fee_registry_router
from fee_engine.core.config import settings
from fee_engine.core.logging_config import setup_logging


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="Fee Breakdown & Allocation Engine")

    # CORS: the admin UI calls this API directly
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(fee_registry_router)

    return app


app = create_app()

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from callroster.core.config import AllocationSettings, configure_settings
from callroster.routes import agents, tasks


def create_app(settings: AllocationSettings | None = None) -> FastAPI:
    app = FastAPI(title="Callroster Allocation API", version="0.1.0")

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    configure_settings(settings or AllocationSettings.from_env())

    origins_env = os.getenv("API_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
    if not origins:
        origins = ["http://localhost:3000", "http://127.0.0.1:3000"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(agents.router, prefix="/api")
    app.include_router(tasks.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Callroster Allocation API",
                "docs": "/docs",
                "health": "/api/agents",
            }
        )

    return app


app = create_app()

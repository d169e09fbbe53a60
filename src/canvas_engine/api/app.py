from __future__ import annotations

from fastapi import FastAPI

from canvas_engine.api.lifespan import lifespan
from canvas_engine.api.routes.batch import router as batch_router
from canvas_engine.api.routes.health import router as health_router
from canvas_engine.api.routes.history import router as history_router
from canvas_engine.api.routes.instances import router as instances_router
from canvas_engine.api.routes.nodes import router as nodes_router


def create_app() -> FastAPI:
    app = FastAPI(
        title="Canvas Engine API",
        description="Read and edit a design canvas document with operation scripts.",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(health_router, include_in_schema=False)
    app.include_router(batch_router)
    app.include_router(nodes_router)
    app.include_router(history_router)
    app.include_router(instances_router)

    return app

"""FastAPI application for the Figma export service."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from common.config import settings
from common.logging import configure_logging, get_logger

from .metrics import router as metrics_router
from .routes.export import router as export_router
from .routes.images import router as images_router
from .routes.token import router as token_router

configure_logging()
logger = get_logger(__name__)

app = FastAPI(
    title="Figma Export Service",
    description="Node export with tiered image resolution",
    version="0.1.0",
)

# The design-tool plugin calls these endpoints from its own origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(export_router)
app.include_router(images_router)
app.include_router(token_router)
app.include_router(metrics_router)


@app.get("/healthz")
async def health() -> dict[str, str]:
    return {"status": "ok", "service": settings.service_name}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8500)

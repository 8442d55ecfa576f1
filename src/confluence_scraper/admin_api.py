"""FastAPI admin endpoints for manual control."""

from __future__ import annotations

from fastapi import FastAPI, HTTPException

from . import config as cfg
from .scraper_engine import GatherEngine


def build_admin_app(app_config: cfg.AppConfig, engine: GatherEngine) -> FastAPI:
    """Create FastAPI app exposing admin endpoints."""
    app = FastAPI(title="Confluence Scraper Admin", version="0.1.0")

    def find_target(name: str) -> cfg.TargetConfig:
        for target in app_config.targets:
            if target.name == name:
                return target
        raise HTTPException(status_code=404, detail="Target not found")

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/targets")
    async def list_targets():
        """List configured targets without credentials."""
        return [
            {
                "name": t.name,
                "url": t.url,
                "frequency": app_config.frequency_for(t),
            }
            for t in app_config.targets
        ]

    @app.post("/targets/{name}/gather")
    async def run_target(name: str):
        """Trigger a manual gather for a target."""
        acc = await engine.gather_target(find_target(name))
        return {
            "status": "triggered",
            "records": len(acc.metrics),
            "errors": [str(err) for err in acc.errors],
        }

    return app

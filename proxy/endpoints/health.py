"""
Health check and status endpoints.
"""
import time

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/")
async def root(request: Request):
    """Proxy status and routing configuration"""
    state = request.app.state
    return {
        "status": "ok",
        "message": "Anthropic OpenRouter Proxy",
        "config": {
            "mode": "monitor" if state.monitor_mode else "hybrid",
            "default_model": state.default_model or None,
            "mappings": {family: model for family, model in state.model_map.items() if model},
        },
    }


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint"""
    return {"status": "ok", "model": request.app.state.default_model or None, "timestamp": time.time()}

"""Health check endpoints."""

from courseflow.health.router import router


__all__ = ["router"]

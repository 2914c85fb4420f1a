"""Route handlers for the HTTP API."""

from kalimat.web.routes.health import router as health_router
from kalimat.web.routes.functions import router as functions_router
from kalimat.web.routes.entities import router as entities_router
from kalimat.web.routes.learning import router as learning_router
from kalimat.web.routes.quran import router as quran_router

__all__ = [
    "health_router",
    "functions_router",
    "entities_router",
    "learning_router",
    "quran_router",
]

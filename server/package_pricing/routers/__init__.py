"""FastAPI routers package."""

from .departure import router as departure_router
from .health import router as health_router
from .ledger import router as ledger_router
from .metrics import router as metrics_router
from .package import router as package_router
from .pricing import router as pricing_router
from .run import router as run_router
from .season import router as season_router

__all__ = [
    "departure_router",
    "health_router",
    "ledger_router",
    "metrics_router",
    "package_router",
    "pricing_router",
    "run_router",
    "season_router",
]

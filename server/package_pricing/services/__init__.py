"""Service layer package."""

from .cost_catalog import CostCatalog
from .csv_codec import CsvCodec
from .departure_sync import DepartureSyncReconciler
from .ledger_service import LedgerService
from .package_service import PackageService
from .pricing_service import SeasonalPricingService
from .run_service import RunService

__all__ = [
    "CostCatalog",
    "CsvCodec",
    "DepartureSyncReconciler",
    "LedgerService",
    "PackageService",
    "RunService",
    "SeasonalPricingService",
]

"""Models module exporting all database models."""

from .departure import Departure, FlightAugmentation, Rate
from .package import FlightSource, Package, PricingModule
from .pricing import PricingEntry
from .run import PricingRun, RunKind
from .season import Season

__all__ = [
    # Core entities
    "Package",
    "PricingModule",
    "FlightSource",
    "Season",

    # Upstream departures
    "Departure",
    "Rate",
    "FlightAugmentation",

    # Ledger
    "PricingEntry",

    # Audit
    "PricingRun",
    "RunKind",
]

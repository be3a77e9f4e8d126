"""Flight source selection."""

from typing import Callable, Optional

import httpx

from ..models.package import FlightSource
from .flight_quotes import FlightQuoteProvider
from .serp_flights import SerpFlightProvider
from .sunshine_flights import SunshineFlightProvider

ProviderFactory = Callable[[FlightSource], FlightQuoteProvider]

PROVIDERS: dict[FlightSource, type[FlightQuoteProvider]] = {
    FlightSource.SUNSHINE: SunshineFlightProvider,
    FlightSource.SERP: SerpFlightProvider,
}


def get_flight_provider(
    source: FlightSource | str,
    client: Optional[httpx.AsyncClient] = None,
) -> FlightQuoteProvider:
    """Provider for a package's configured flight source."""
    return PROVIDERS[FlightSource(source)](client=client)

"""FastAPI dependencies for the acting operator and upstream clients."""

from typing import Optional

from fastapi import Header

from ..services.providers import ProviderFactory, get_flight_provider
from ..services.tour_platform import TourPlatformClient

# Longest actor name stored on a pricing run
MAX_ACTOR_LENGTH = 120


async def get_actor(
    actor: Optional[str] = Header(None, alias="X-Actor")
) -> str:
    """
    Name of the operator performing a write, recorded on pricing runs.

    Requests without an ``X-Actor`` header act as ``system``.
    """
    if not actor or not actor.strip():
        return "system"
    return actor.strip()[:MAX_ACTOR_LENGTH]


def get_provider_factory() -> ProviderFactory:
    """
    Factory that builds the flight quote provider for a package's flight source.

    Tests override this dependency to quote from canned fares.
    """
    return get_flight_provider


def get_catalog_client_factory():
    """Factory that builds the tour platform client used by departure sync."""
    return TourPlatformClient

"""Pydantic schemas for request/response validation."""

from .common import *  # noqa: F403
from .departure import *  # noqa: F403
from .health import *  # noqa: F403
from .ledger import *  # noqa: F403
from .package import *  # noqa: F403
from .pricing import *  # noqa: F403
from .run import *  # noqa: F403
from .season import *  # noqa: F403

"""Pydantic schemas for request/response validation."""

from .claim import *  # noqa: F403
from .commission import *  # noqa: F403
from .common import *  # noqa: F403
from .eligibility import *  # noqa: F403
from .health import *  # noqa: F403
from .invitation import *  # noqa: F403
from .reassignment import *  # noqa: F403
from .request import *  # noqa: F403

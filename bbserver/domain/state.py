"""Driver state for bbserver."""

from enum import Enum


class DriverState(Enum):
    """
    Which backend serves a driver's operations.

    ACTIVE: the Bitbucket Server REST API.
    FELL_BACK: a clone-based driver; permanent for the driver's lifetime.
    """
    ACTIVE = "active"
    FELL_BACK = "fell_back"

"""
Domain layer for bbserver.

Contains pure domain objects with no I/O or side effects:
- RepositoryIdentity: Canonical origin/owner/slug of a Bitbucket Server repository
- PackageDescriptor: Parsed manifest of one revision, plus enrichment
- DriverState: Whether the driver talks REST or delegates to a clone driver

These objects are immutable and safe to share between components.
"""

from .repository import RepositoryIdentity
from .descriptor import PackageDescriptor, EnrichmentContext, enrich
from .state import DriverState

__all__ = [
    'RepositoryIdentity',
    'PackageDescriptor',
    'EnrichmentContext',
    'enrich',
    'DriverState',
]

"""
bbserver - Repository metadata driver for self-hosted Bitbucket Server.

bbserver resolves a repository URL against an allow-list of Bitbucket Server
domains and answers what a package manager needs to know about the
repository: tags, branches, manifests, archives and source references.

Quick Start:
    from bbserver import BitbucketServerDriver, load_driver_config

    config = load_driver_config()
    url = "https://bitbucket.mycompany.com/scm/project/repo.git"

    if BitbucketServerDriver.supports(config, url):
        driver = BitbucketServerDriver(url, config)
        print(driver.get_root_identifier())
        for tag, commit in driver.get_tags().items():
            print(tag, commit)

Fallback:
    When the REST API rejects the repository metadata request, the driver
    builds a clone-based driver from ``git@{origin}/{owner}/{slug}.git``
    through the ``fallback_factory`` it was given and delegates every later
    call to it.

Configuration keys:
    bitbucket-server-domains - allowed origins (host, host:port, host/prefix)
    cache-repo-dir           - root of the descriptor cache
    cache-read-only          - read the cache but never write it
    secure-http              - use https for REST calls of ssh:// URLs
"""

__version__ = "0.3.0"

from .config import DriverConfig, load_config, load_driver_config
from .domain import DriverState, PackageDescriptor, RepositoryIdentity, enrich
from .driver import BitbucketServerDriver, VcsDriver
from .client import BitbucketServerClient
from .cache import MetadataCache
from .origin import parse_url, resolve_origin
from .pagination import fetch_paged_refs
from .exit_codes import (
    CommandError,
    ConfigError,
    FallbackInitError,
    InvalidUrlError,
    TransportError,
    UnsupportedOriginError,
    UnsupportedVcsError,
)

__all__ = [
    "__version__",
    # Driver
    "BitbucketServerDriver",
    "BitbucketServerClient",
    "VcsDriver",
    "MetadataCache",
    # Domain objects
    "DriverState",
    "PackageDescriptor",
    "RepositoryIdentity",
    "enrich",
    # Building blocks
    "parse_url",
    "resolve_origin",
    "fetch_paged_refs",
    # Configuration
    "DriverConfig",
    "load_config",
    "load_driver_config",
    # Errors
    "CommandError",
    "ConfigError",
    "FallbackInitError",
    "InvalidUrlError",
    "TransportError",
    "UnsupportedOriginError",
    "UnsupportedVcsError",
]

"""
Bitbucket Server repository driver.

BitbucketServerDriver answers the questions a package manager asks about a
repository (tags, branches, manifests, archives) through the REST API. When
the API cannot be used, typically because the server only allows
authenticated clones, the driver switches for good to a clone-based driver
built from the repository's SSH URL and forwards every call to it.
"""

import importlib.util
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Protocol

from .cache import MetadataCache
from .client import BitbucketServerClient
from .config import DriverConfig
from .domain import DriverState, RepositoryIdentity
from .exit_codes import FallbackInitError, TransportError, UnsupportedOriginError
from .infra.http_client import HttpClient
from .origin import ParsedUrl, match_url, parse_url, resolve_origin
from .pagination import Fetcher

logger = logging.getLogger(__name__)


class VcsDriver(Protocol):
    """Operations shared by this driver and its clone-based fallback."""

    def initialize(self) -> None: ...

    def get_url(self) -> str: ...

    def get_root_identifier(self) -> str: ...

    def get_composer_information(self, revision: str) -> Optional[Dict[str, Any]]: ...

    def get_file_content(self, path: str, revision: str) -> Optional[str]: ...

    def get_change_date(self, revision: str) -> Optional[datetime]: ...

    def get_source(self, revision: str) -> Dict[str, Any]: ...

    def get_dist(self, revision: str) -> Optional[Dict[str, Any]]: ...

    def get_tags(self) -> Dict[str, str]: ...

    def get_branches(self) -> Dict[str, str]: ...


FallbackFactory = Callable[[str], VcsDriver]


def _rest_scheme(parsed: ParsedUrl, config: DriverConfig) -> str:
    if parsed.scheme in ('http', 'https'):
        return parsed.scheme
    return 'https' if config.secure_http else 'http'


class BitbucketServerDriver:
    """
    Driver for repositories hosted on a self-hosted Bitbucket Server.

    Example:
        config = load_driver_config()
        if BitbucketServerDriver.supports(config, url):
            driver = BitbucketServerDriver(url, config, fallback_factory=GitDriver)
            driver.initialize()
            for tag, commit in driver.get_tags().items():
                print(tag, driver.get_dist(commit)['url'])
    """

    def __init__(
        self,
        url: str,
        config: DriverConfig,
        http: Optional[Fetcher] = None,
        fallback_factory: Optional[FallbackFactory] = None,
        website: Optional[str] = None,
    ):
        """
        Initialize BitbucketServerDriver.

        Args:
            url: Repository URL (https://, http:// or ssh://)
            config: Driver configuration
            http: Transport; built from config when omitted
            fallback_factory: Builds the clone-based driver from an SSH URL
            website: Homepage for descriptors that do not declare one

        Raises:
            InvalidUrlError: If the URL is not a repository URL
            UnsupportedOriginError: If no configured domain matches the URL
        """
        parsed = parse_url(url)
        origin = resolve_origin(
            config.bitbucket_server_domains, parsed.domain, parsed.path_segments, parsed.port
        )
        if origin is None:
            raise UnsupportedOriginError(url)

        self.url = url
        self.config = config
        self.identity = RepositoryIdentity(
            origin=origin,
            owner=parsed.owner,
            slug=parsed.repo,
            scheme=_rest_scheme(parsed, config),
        )
        self.cache = MetadataCache.for_repository(config, self.identity)
        self.client = BitbucketServerClient(
            self.identity,
            http or HttpClient.from_config(config),
            self.cache,
            url=url,
            website=website,
        )
        self._fallback_factory = fallback_factory
        self._fallback: Optional[VcsDriver] = None

    def initialize(self) -> None:
        """Nothing is fetched up front; the first operation talks to the server."""
        logger.debug(f"Bitbucket Server driver for {self.url} -> {self.identity.api_url}")

    @staticmethod
    def supports(config: DriverConfig, url: str) -> bool:
        """
        Check whether this driver handles a URL, without network access.

        Args:
            config: Driver configuration with the domain allow-list
            url: Repository URL

        Returns:
            True if the URL matches a configured Bitbucket Server domain
        """
        parsed = match_url(url)
        if parsed is None:
            return False

        origin = resolve_origin(
            config.bitbucket_server_domains, parsed.domain, parsed.path_segments, parsed.port
        )
        if origin is None:
            return False

        if parsed.scheme == 'https' and importlib.util.find_spec('ssl') is None:
            logger.debug(f"Skipping Bitbucket Server driver for {url} because the ssl module is missing")
            return False

        return True

    @property
    def state(self) -> DriverState:
        return DriverState.FELL_BACK if self._fallback is not None else DriverState.ACTIVE

    @property
    def fallback_driver(self) -> Optional[VcsDriver]:
        return self._fallback

    def fetch_repo_data(self) -> bool:
        """
        Load repository metadata over REST.

        Returns:
            True if the REST API answered, False if the driver switched to
            the clone-based fallback instead

        Raises:
            FallbackInitError: If the REST API failed and the fallback
                driver could not be set up either
        """
        if self._fallback is not None:
            return False

        try:
            self.client.fetch_repo_data()
            return True
        except TransportError as e:
            logger.info(f"REST API unavailable for {self.url} ({e}), falling back to git clone")
            self._switch_to_fallback(e)
            return False

    def _switch_to_fallback(self, cause: TransportError) -> None:
        ssh_url = self.identity.ssh_url
        message = (
            f"Failed to clone the {ssh_url} repository, try running in interactive mode "
            "so that you can enter your Bitbucket Server credentials"
        )

        if self._fallback_factory is None:
            logger.error(message)
            raise FallbackInitError(message, ssh_url, cause.url, cause.status_code) from cause

        try:
            fallback = self._fallback_factory(ssh_url)
            fallback.initialize()
        except Exception as e:
            logger.error(message)
            raise FallbackInitError(message, ssh_url, cause.url, cause.status_code) from e

        self._fallback = fallback
        logger.info(f"Using clone-based driver for {ssh_url}")

    def get_url(self) -> str:
        if self._fallback is not None:
            return self._fallback.get_url()
        return self.client.get_url()

    def get_root_identifier(self) -> str:
        if self._fallback is not None:
            return self._fallback.get_root_identifier()

        if not self.client.repo_data_loaded and not self.fetch_repo_data():
            return self._fallback.get_root_identifier()

        return self.client.get_root_identifier()

    def get_composer_information(self, revision: str) -> Optional[Dict[str, Any]]:
        if self._fallback is not None:
            return self._fallback.get_composer_information(revision)
        return self.client.get_composer_information(revision)

    def get_file_content(self, path: str, revision: str) -> Optional[str]:
        if self._fallback is not None:
            return self._fallback.get_file_content(path, revision)
        return self.client.get_file_content(path, revision)

    def get_change_date(self, revision: str) -> Optional[datetime]:
        if self._fallback is not None:
            return self._fallback.get_change_date(revision)
        return self.client.get_change_date(revision)

    def get_source(self, revision: str) -> Dict[str, Any]:
        if self._fallback is not None:
            return self._fallback.get_source(revision)
        return self.client.get_source(revision)

    def get_dist(self, revision: str) -> Optional[Dict[str, Any]]:
        if self._fallback is not None:
            return self._fallback.get_dist(revision)
        return self.client.get_dist(revision)

    def get_tags(self) -> Dict[str, str]:
        if self._fallback is not None:
            return self._fallback.get_tags()
        return self.client.get_tags()

    def get_branches(self) -> Dict[str, str]:
        if self._fallback is not None:
            return self._fallback.get_branches()
        return self.client.get_branches()

"""
Bitbucket Server REST client for bbserver.

Wraps the ``/rest/api/1.0`` endpoints a package manager needs for one
repository:
- Repository metadata (clone links, SCM type)
- Default branch, tags and branches
- Raw files and commit metadata at a revision
- Archive (dist) and source descriptors

Tags, branches and the root identifier are fetched at most once per client.
"""

import logging
import re
from datetime import datetime, timezone
from functools import cached_property
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

from .cache import MetadataCache
from .domain import EnrichmentContext, PackageDescriptor, RepositoryIdentity, enrich
from .exit_codes import TransportError, UnsupportedVcsError
from .pagination import Fetcher, fetch_paged_refs

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "master"
DEFAULT_MANIFEST = "composer.json"

_CREDENTIALS = re.compile(r'^(https?://)[^@/]+@')


def strip_credentials(url: str) -> str:
    """Drop ``user[:password]@`` from an HTTP(S) URL."""
    return _CREDENTIALS.sub(r'\1', url)


def _find_name(refs: Dict[str, str], commit: str) -> Optional[str]:
    for name, latest in refs.items():
        if latest == commit:
            return name
    return None


class BitbucketServerClient:
    """
    REST access to a single Bitbucket Server repository.

    Example:
        client = BitbucketServerClient(identity, HttpClient(), cache)
        client.fetch_repo_data()
        branch = client.get_root_identifier()
        info = client.get_composer_information(branch)
    """

    def __init__(
        self,
        identity: RepositoryIdentity,
        http: Fetcher,
        cache: MetadataCache,
        url: str = "",
        website: Optional[str] = None,
        manifest: str = DEFAULT_MANIFEST,
    ):
        """
        Initialize BitbucketServerClient.

        Args:
            identity: Resolved repository identity
            http: Transport used for every request
            cache: Descriptor cache of this repository
            url: Repository URL as given by the user, used in messages
            website: Homepage to use for descriptors without one
            manifest: Manifest file read for package descriptors
        """
        self.identity = identity
        self.http = http
        self.cache = cache
        self.url = url or identity.browse_url
        self.website = website
        self.manifest = manifest

        self.clone_url = ""
        self.home_url = ""
        self.vcs_type: Optional[str] = None
        self.has_issues = False
        self.repo_data_loaded = False
        self._descriptors: Dict[str, Optional[PackageDescriptor]] = {}

    def fetch_repo_data(self) -> None:
        """
        Load clone links and SCM type of the repository.

        Raises:
            TransportError: If the repository resource cannot be fetched
        """
        data = self.http.fetch(self.identity.api_url).json()
        links = data.get('links') or {}

        for link in links.get('clone') or []:
            if link.get('name') == 'http':
                self.clone_url = strip_credentials(link.get('href', ''))

        self_links = links.get('self') or []
        if self_links and self_links[0].get('href'):
            self.home_url = self_links[0]['href']

        # Bitbucket Server exposes no issue tracker
        self.has_issues = False
        self.vcs_type = data.get('scmId')
        self.repo_data_loaded = True
        logger.debug(f"{self.identity}: scm={self.vcs_type} clone={self.clone_url}")

    @cached_property
    def root_identifier(self) -> str:
        if not self.repo_data_loaded:
            self.fetch_repo_data()

        if self.vcs_type != 'git':
            raise UnsupportedVcsError(self.url, self.vcs_type, self.clone_url)

        response = self.http.fetch(f"{self.identity.api_url}/branches/default")
        # No content when the repository has no default branch yet
        data = response.json() if response.body.strip() else {}
        return data.get('displayId') or DEFAULT_BRANCH

    def get_root_identifier(self) -> str:
        """Default branch of the repository."""
        return self.root_identifier

    @cached_property
    def tags(self) -> Dict[str, str]:
        return fetch_paged_refs(self.http, f"{self.identity.api_url}/tags")

    @cached_property
    def branches(self) -> Dict[str, str]:
        return fetch_paged_refs(self.http, f"{self.identity.api_url}/branches")

    def get_tags(self) -> Dict[str, str]:
        """Tag name -> latest commit."""
        return self.tags

    def get_branches(self) -> Dict[str, str]:
        """Branch name -> latest commit."""
        return self.branches

    def get_url(self) -> str:
        return self.clone_url

    def _resolve_branch(self, revision: str) -> str:
        # Branch names with a slash cannot be passed as ?at= directly
        if '/' in revision:
            branches = self.get_branches()
            if revision in branches:
                return branches[revision]
        return revision

    def get_file_content(self, path: str, revision: str) -> Optional[str]:
        """
        Get the contents of a file at a revision.

        Args:
            path: File path relative to the repository root
            revision: Tag, branch or commit

        Returns:
            File contents, or None if the file does not exist
        """
        revision = self._resolve_branch(revision)
        url = (
            f"{self.identity.api_url}/raw/{quote(path.lstrip('/'))}"
            f"?{urlencode({'at': revision})}"
        )
        try:
            return self.http.fetch(url).text
        except TransportError as e:
            if e.status_code == 404:
                return None
            raise

    def get_change_date(self, revision: str) -> Optional[datetime]:
        """Author date of the commit a revision points to, in UTC."""
        revision = self._resolve_branch(revision)
        commit = self.http.fetch(
            f"{self.identity.api_url}/commits/{quote(revision, safe='')}"
        ).json()

        timestamp = commit.get('authorTimestamp')
        if timestamp is None:
            return None
        return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)

    def get_dist(self, revision: str) -> Dict[str, Any]:
        query = urlencode({'at': revision, 'format': 'zip'})
        return {
            'type': 'zip',
            'url': f"{self.identity.api_url}/archive?{query}",
            'reference': revision,
            'shasum': '',
        }

    def get_source(self, revision: str) -> Dict[str, Any]:
        return {
            'type': self.vcs_type or 'git',
            'url': self.get_url(),
            'reference': revision,
        }

    def get_composer_information(self, revision: str) -> Optional[Dict[str, Any]]:
        """
        Parsed and enriched manifest of a revision.

        Looked up in memory, then in the metadata cache, then read from
        the server.

        Returns:
            Manifest mapping, or None when the revision has no valid manifest
        """
        if revision not in self._descriptors:
            self._descriptors[revision] = self._load_descriptor(revision)

        descriptor = self._descriptors[revision]
        return descriptor.to_dict() if descriptor else None

    def _load_descriptor(self, revision: str) -> Optional[PackageDescriptor]:
        if self.cache.should_cache(revision):
            cached = self.cache.read(revision)
            if cached is not None:
                logger.debug(f"{self.identity}: cache hit for {revision}")
                return cached

        descriptor = self._read_manifest(revision)
        if descriptor is None:
            return None

        descriptor = enrich(descriptor, self._enrichment_context(descriptor, revision))
        self.cache.write(revision, descriptor)
        return descriptor

    def _read_manifest(self, revision: str) -> Optional[PackageDescriptor]:
        content = self.get_file_content(self.manifest, revision)
        if not content:
            return None

        descriptor = PackageDescriptor.parse(content)
        if descriptor is None:
            logger.warning(f"{self.url}: {revision}:{self.manifest} is not a valid manifest, skipping")
            return None

        if descriptor.time is None:
            changed = self.get_change_date(revision)
            if changed is not None:
                descriptor = descriptor.with_time(changed.isoformat())
        return descriptor

    def source_url(self, revision: str) -> str:
        """
        Browse link for a revision.

        The revision is shown by tag or branch name when one points at it;
        anything that is not a known ref links to the repository root.
        """
        tags = self.get_tags()
        branches = self.get_branches()
        label = _find_name(tags, revision) or _find_name(branches, revision) or revision

        if label in tags or label in branches:
            return f"{self.identity.browse_url}?{urlencode({'at': label})}"
        return self.identity.browse_url

    def _enrichment_context(self, descriptor: PackageDescriptor, revision: str) -> EnrichmentContext:
        return EnrichmentContext(
            source_url=self.source_url(revision) if descriptor.support_source is None else None,
            issues_url=self.identity.issues_url if self.has_issues else None,
            homepage=self.website or self.home_url or self.identity.browse_url,
        )

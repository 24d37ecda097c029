"""
Repository identity domain object for bbserver.

RepositoryIdentity is resolved once from the repository URL and never
changes afterwards. Every REST resource, browse link and cache directory
of a repository is derived from it.
"""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class RepositoryIdentity:
    """
    Immutable identity of a Bitbucket Server repository.

    Example:
        identity = RepositoryIdentity("bitbucket.mycompany.com", "project", "repo")
        identity.api_url
        # 'https://bitbucket.mycompany.com/rest/api/1.0/projects/project/repos/repo'
    """
    origin: str   # host[:port][/path-prefix]
    owner: str    # project key or user slug
    slug: str
    scheme: str = "https"

    def __post_init__(self):
        if self.scheme not in ("http", "https"):
            raise ValueError(f"Unsupported scheme for REST access: {self.scheme}")
        if not self.origin or not self.owner or not self.slug:
            raise ValueError("origin, owner and slug must not be empty")

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.origin}"

    @property
    def api_url(self) -> str:
        """REST resource of the repository."""
        return f"{self.base_url}/rest/api/1.0/projects/{self.owner}/repos/{self.slug}"

    @property
    def browse_url(self) -> str:
        return f"{self.base_url}/projects/{self.owner}/repos/{self.slug}/browse"

    @property
    def issues_url(self) -> str:
        return f"{self.base_url}/{self.owner}/{self.slug}/issues"

    @property
    def ssh_url(self) -> str:
        """SSH URL handed to the clone-based fallback driver."""
        return f"git@{self.origin}/{self.owner}/{self.slug}.git"

    @property
    def cache_namespace(self) -> str:
        return f"{self.origin}/{self.owner}/{self.slug}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'origin': self.origin,
            'owner': self.owner,
            'slug': self.slug,
            'scheme': self.scheme,
        }

    def __str__(self) -> str:
        return self.cache_namespace

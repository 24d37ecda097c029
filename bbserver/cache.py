"""
Per-revision cache of parsed package descriptors.

Each repository gets its own directory under ``cache-repo-dir``
(``{origin}/{owner}/{slug}``), so revisions of different repositories
never share a key.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from .config import DriverConfig
from .domain import PackageDescriptor, RepositoryIdentity
from .infra.file_store import FileStore

logger = logging.getLogger(__name__)


class MetadataCache:
    """Cache of PackageDescriptors keyed by revision."""

    def __init__(self, store: FileStore):
        self.store = store

    @classmethod
    def for_repository(cls, config: DriverConfig, identity: RepositoryIdentity) -> 'MetadataCache':
        directory = Path(config.cache_repo_dir).expanduser() / identity.cache_namespace
        return cls(FileStore(directory, read_only=config.cache_read_only))

    @property
    def read_only(self) -> bool:
        return self.store.read_only

    @staticmethod
    def should_cache(revision: str) -> bool:
        # TODO: restrict to 40-char commit hashes once callers pass resolved
        # commits; branch heads move and their cached descriptors go stale.
        return bool(revision)

    def read(self, revision: str) -> Optional[PackageDescriptor]:
        raw = self.store.read(revision)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Ignoring corrupt cache entry for {revision}: {e}")
            return None
        if not isinstance(data, dict):
            return None
        return PackageDescriptor(data)

    def write(self, revision: str, descriptor: Optional[PackageDescriptor]) -> bool:
        """Store a descriptor; absent descriptors and read-only caches write nothing."""
        if descriptor is None or not self.should_cache(revision):
            return False
        return self.store.write(revision, descriptor.to_json())

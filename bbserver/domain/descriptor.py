"""
Package descriptor domain object for bbserver.

A PackageDescriptor is the parsed manifest (composer.json) of one revision.
Enrichment only ever adds fields that the manifest does not already define.
"""

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class EnrichmentContext:
    """Values offered to a descriptor for the fields it leaves out."""
    source_url: Optional[str] = None
    issues_url: Optional[str] = None
    homepage: Optional[str] = None


@dataclass(frozen=True)
class PackageDescriptor:
    """
    Immutable wrapper around a parsed manifest mapping.

    The wrapped mapping is copied on the way in and on the way out, so a
    descriptor can be cached and handed out without callers mutating it.
    """
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'data', copy.deepcopy(dict(self.data)))

    @classmethod
    def parse(cls, text: str) -> Optional['PackageDescriptor']:
        """
        Parse manifest JSON.

        Returns:
            PackageDescriptor, or None when the text is not a non-empty JSON object
        """
        try:
            data = json.loads(text)
        except (TypeError, ValueError):
            return None
        if not isinstance(data, dict) or not data:
            return None
        return cls(data)

    def _support(self) -> Dict[str, Any]:
        support = self.data.get('support')
        return support if isinstance(support, dict) else {}

    @property
    def support_source(self) -> Optional[str]:
        return self._support().get('source')

    @property
    def support_issues(self) -> Optional[str]:
        return self._support().get('issues')

    @property
    def homepage(self) -> Optional[str]:
        return self.data.get('homepage')

    @property
    def time(self) -> Optional[str]:
        return self.data.get('time') or None

    def with_time(self, value: str) -> 'PackageDescriptor':
        """Create a new descriptor with ``time`` set, unless it already has one."""
        if self.time is not None:
            return self
        data = self.to_dict()
        data['time'] = value
        return PackageDescriptor(data)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.data)

    def to_json(self) -> str:
        return json.dumps(self.data, ensure_ascii=False)


def enrich(descriptor: PackageDescriptor, context: EnrichmentContext) -> PackageDescriptor:
    """
    Fill in support.source, support.issues and homepage from context.

    Fields already present in the descriptor are kept as they are, and
    context values that are None or empty are ignored. A ``support`` entry
    that is not a mapping is left alone.
    """
    data = descriptor.to_dict()
    support = data.get('support')
    if support is None:
        support = {}

    if isinstance(support, dict):
        if support.get('source') is None and context.source_url:
            support['source'] = context.source_url
        if support.get('issues') is None and context.issues_url:
            support['issues'] = context.issues_url
        if support:
            data['support'] = support

    if data.get('homepage') is None and context.homepage:
        data['homepage'] = context.homepage

    return PackageDescriptor(data)

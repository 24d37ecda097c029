"""
Origin resolution for Bitbucket Server repository URLs.

The same server can be reachable as ``host``, ``host:port`` or behind a
reverse proxy as ``host/some/prefix``. The allow-list
(``bitbucket-server-domains``) names the forms in use; resolution walks the
URL's leading path segments until one of them matches.

Example:
    >>> parsed = parse_url("https://mycompany.com/bitbucket/scm/project/repo.git")
    >>> resolve_origin(["mycompany.com/bitbucket"], parsed.domain,
    ...                parsed.path_segments, parsed.port)
    'mycompany.com/bitbucket'
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .exit_codes import InvalidUrlError

URL_PATTERN = re.compile(
    r'^(?P<scheme>https?|ssh)://'
    r'(?:(?P<login>.+?)@)?'
    r'(?P<domain>.+?)'
    r'(?::(?P<port>[0-9]+))?'
    r'(?P<parts>/.+)?'
    r'/~?(?P<owner>[^/]+)'
    r'/(?P<repo>[^/]+?)(?:\.git)?$'
)

_PORT_PATTERN = re.compile(r':\d+')


@dataclass(frozen=True)
class ParsedUrl:
    """Structural parts of a repository URL."""
    scheme: str
    domain: str
    owner: str
    repo: str
    login: Optional[str] = None
    port: Optional[str] = None
    path_segments: tuple = ()


def match_url(url: str) -> Optional[ParsedUrl]:
    """Parse a repository URL, returning None when it has the wrong shape."""
    match = URL_PATTERN.match(url.strip())
    if not match:
        return None

    parts = match.group('parts') or ''
    return ParsedUrl(
        scheme=match.group('scheme'),
        domain=match.group('domain'),
        owner=match.group('owner'),
        repo=match.group('repo'),
        login=match.group('login'),
        port=match.group('port'),
        path_segments=tuple(segment for segment in parts.split('/') if segment),
    )


def parse_url(url: str) -> ParsedUrl:
    """
    Parse a repository URL.

    Raises:
        InvalidUrlError: If the URL does not look like a repository URL
    """
    parsed = match_url(url)
    if parsed is None:
        raise InvalidUrlError(url)
    return parsed


def resolve_origin(
    configured_domains: Iterable[str],
    domain: str,
    path_segments: Sequence[str] = (),
    port: Optional[str] = None,
) -> Optional[str]:
    """
    Find the configured origin a URL belongs to.

    Args:
        configured_domains: Allow-listed origins
        domain: Host part of the URL
        path_segments: Path segments between the host and the owner
        port: Port of the URL, if any

    Returns:
        The matching origin, port-qualified when the URL has a port,
        or None when nothing matches
    """
    domains: List[str] = list(configured_domains)
    guessed = domain.lower()

    if guessed in domains or (port and f"{guessed}:{port}" in domains):
        if port:
            return f"{guessed}:{port}"
        return guessed

    if port:
        guessed += f":{port}"

    for part in path_segments:
        guessed += f"/{part}"
        if guessed in domains or (port and _PORT_PATTERN.sub('', guessed) in domains):
            return guessed

    return None

"""
Cursor pagination over Bitbucket Server ref collections.

Tag and branch listings come back in pages shaped like::

    {"values": [{"displayId": "v1.0", "latestCommit": "abc123"}, ...],
     "isLastPage": false,
     "nextPageStart": 100}
"""

import logging
from typing import Any, Dict, Protocol
from urllib.parse import urlencode

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


class Fetcher(Protocol):
    """Anything that can GET a URL, such as infra.HttpClient."""

    def fetch(self, url: str) -> Any:
        ...


def page_url(resource_url: str, start: int, limit: int = DEFAULT_PAGE_SIZE) -> str:
    """URL of one page of a ref collection, newest modifications first."""
    query = urlencode({'start': start, 'limit': limit, 'orderBy': 'MODIFICATION'})
    return f"{resource_url}?{query}"


def fetch_paged_refs(
    http: Fetcher,
    resource_url: str,
    limit: int = DEFAULT_PAGE_SIZE,
) -> Dict[str, str]:
    """
    Collect every page of a ref collection.

    Args:
        http: Transport used for each page
        resource_url: Collection URL without query string
        limit: Page size requested from the server

    Returns:
        Mapping of display id to latest commit, in server order

    Raises:
        TransportError: If any page cannot be fetched
    """
    refs: Dict[str, str] = {}
    start = 0
    pages = 0

    while True:
        data = http.fetch(page_url(resource_url, start, limit)).json()
        pages += 1

        for value in data.get('values') or []:
            name = value.get('displayId')
            commit = value.get('latestCommit')
            if name is None or commit is None:
                logger.debug(f"{resource_url}: skipping incomplete ref {value}")
                continue
            refs[name] = commit

        # Servers that omit isLastPage get a single page
        if data.get('isLastPage', True) is not False:
            break

        start = data.get('nextPageStart')
        if start is None:
            logger.warning(f"{resource_url}: page {pages} has no nextPageStart, stopping")
            break

    logger.debug(f"Fetched {len(refs)} refs from {resource_url} in {pages} page(s)")
    return refs

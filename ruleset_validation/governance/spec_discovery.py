"""Locate the OpenAPI/Swagger document served by a running REST service.

Services publish their API description at a handful of conventional paths.
Discovery probes them in a fixed order and returns the first response that
looks like an OpenAPI or Swagger document:
- `<base>/openapi.json`, `<base>/swagger/v1/swagger.json`, ...
- the same suffixes under the API root (base without a trailing `/v<N>`)
- `?format=...` query variants on the API root
"""

import logging
import re
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

import httpx

from .exceptions import SpecNotFound

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 20.0

DOCUMENT_SUFFIXES = (
    "/v1/openapi/v1.json",
    "/openapi/v1.json",
    "/openapi.json",
    "/openapi.yaml",
    "/swagger.json",
    "/swagger/v1/swagger.json",
    "/v1/swagger.json",
    "/openapi?format=json",
)

ROOT_QUERY_VARIANTS = (
    "?format=openapi",
    "?format=swagger",
    "?format=swagger-link-json",
)

_VERSION_SEGMENT = re.compile(r"/v\d+$")


@dataclass
class DiscoveredSpec:
    """An API description found on the target service."""

    url: str
    content: str
    attempts: int = 1


def api_root(base_url: str) -> str:
    """Strip a trailing `/v<digits>` path segment from a base URL."""
    base = base_url.rstrip("/")
    parts = urlsplit(base)
    path = _VERSION_SEGMENT.sub("", parts.path)
    if path == parts.path:
        return base
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def build_candidate_urls(base_url: str) -> list[str]:
    """Build the ordered, de-duplicated list of document locations to probe.

    Args:
        base_url: Service base URL, optionally ending in a version segment

    Returns:
        Candidate URLs in probe order
    """
    base = base_url.rstrip("/")
    root = api_root(base)

    candidates: list[str] = []
    for prefix in dict.fromkeys((base, root)):
        candidates.extend(prefix + suffix for suffix in DOCUMENT_SUFFIXES)
    candidates.extend(root + query for query in ROOT_QUERY_VARIANTS)

    return list(dict.fromkeys(candidates))


def looks_like_api_document(text: str) -> bool:
    """Sniff raw response text for OpenAPI/Swagger marker tokens."""
    return '"openapi"' in text or '"swagger"' in text or text.startswith("openapi:")


class SpecDiscovery:
    """Probe a service for its API description.

    Every candidate gets a single bounded GET; transport and HTTP errors are
    logged and skipped, never raised.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
    ) -> None:
        """Initialize discovery.

        Args:
            client: HTTP client to probe with (a default client is created if omitted)
            timeout: Per-request timeout in seconds
        """
        self.client = client or httpx.Client(follow_redirects=True)
        self.timeout = timeout

    def _probe(self, url: str) -> str | None:
        """Fetch a candidate URL, returning its body or None on any failure."""
        try:
            response = self.client.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.text
        except httpx.TimeoutException:
            logger.debug("Probe timed out: %s", url)
        except httpx.HTTPStatusError as e:
            logger.debug("Probe returned %s: %s", e.response.status_code, url)
        except httpx.HTTPError as e:
            logger.debug("Probe failed for %s: %s", url, e)
        return None

    def discover(self, base_url: str) -> DiscoveredSpec:
        """Return the first candidate that serves an OpenAPI/Swagger document.

        Args:
            base_url: Service base URL

        Returns:
            DiscoveredSpec with the matching URL and raw content

        Raises:
            SpecNotFound: If no candidate matched
        """
        candidates = build_candidate_urls(base_url)

        for attempt, url in enumerate(candidates, start=1):
            body = self._probe(url)
            if body is not None and looks_like_api_document(body):
                logger.info("Found API description at %s", url)
                return DiscoveredSpec(url=url, content=body, attempts=attempt)

        raise SpecNotFound(base_url, len(candidates))

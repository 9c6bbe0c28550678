"""
JustWatch API Client

JustWatch has no official public API. The web app talks to an unauthenticated
GraphQL endpoint which we use for availability lookups. It is rate limited
without documented quotas, so callers are expected to pace requests (see
CheckExecutor) and back off when a 429 comes back.

Lookups:
- By full path (e.g. "/us/movie/inception"): exact, preferred
- By name: popular-titles search, first hit wins. May pick a different
  regional edition or a same-named title, so it's only a fallback.

Offers are reduced to provider short names for FLATRATE (subscription)
monetization. Rent/buy/free/ads offers are ignored.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set

import requests
from marshmallow import ValidationError

from schemas import OfferSchema

logger = logging.getLogger(__name__)

JUSTWATCH_GRAPHQL_URL = "https://apis.justwatch.com/graphql"
DEFAULT_COUNTRY = "US"
DEFAULT_LANGUAGE = "en"
USER_AGENT = "StreamTrack/1.0"

# Monetization types that count as "currently streaming"
STREAMING_MONETIZATION_TYPES = {"FLATRATE"}

# JustWatch package short names -> our service slugs
PROVIDER_SLUGS = {
    "nfx": "nfx",  # Netflix
    "amp": "amp",  # Amazon Prime Video
    "hlu": "hlu",  # Hulu
    "dnp": "dnp",  # Disney+
    "hbm": "hbm",  # HBO Max (legacy code)
    "mxx": "hbm",  # Max
    "atp": "atp",  # Apple TV+
    "pct": "pck",  # Peacock Premium
    "pcp": "pck",  # Peacock Premium Plus
    "pmp": "pmp",  # Paramount+
}

_OFFER_FIELDS = """
    offers(country: $country, platform: WEB) {
        monetizationType
        package { shortName clearName }
    }
"""

URL_TITLE_QUERY = (
    """
query GetUrlTitleDetails($fullPath: String!, $country: Country!) {
    urlV2(fullPath: $fullPath) {
        node {
            ... on MovieOrShow {
                id
                objectType
"""
    + _OFFER_FIELDS
    + """
            }
        }
    }
}
"""
)

SEARCH_TITLES_QUERY = (
    """
query GetSearchTitles($searchTitlesFilter: TitleFilter!, $country: Country!, $language: Language!, $first: Int!) {
    popularTitles(country: $country, filter: $searchTitlesFilter, first: $first) {
        edges {
            node {
                id
                objectType
                content(country: $country, language: $language) {
                    title
                    fullPath
                    posterUrl
                }
"""
    + _OFFER_FIELDS
    + """
            }
        }
    }
}
"""
)


class AvailabilityLookupError(Exception):
    """Raised when an availability lookup fails (network, HTTP or payload error)"""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(AvailabilityLookupError):
    """Raised when JustWatch signals rate limiting (HTTP 429)"""

    pass


class TitleNotFoundError(AvailabilityLookupError):
    """Raised when a lookup doesn't match any JustWatch title"""

    pass


def parse_offers(raw_offers: Optional[Iterable[Dict[str, Any]]]) -> List[Dict[str, str]]:
    """Normalise raw GraphQL offers, dropping any that don't parse"""
    schema = OfferSchema()
    offers = []
    for raw in raw_offers or []:
        try:
            offers.append(schema.load(raw))
        except ValidationError as e:
            logger.debug(f"Ignoring malformed offer {raw!r}: {e.messages}")
    return offers


def extract_service_slugs(offers: Iterable[Dict[str, str]]) -> Set[str]:
    """
    Map normalised offers to our service slugs.

    Only streaming (FLATRATE) offers count; unknown providers are ignored.
    """
    slugs = set()
    for offer in offers:
        if offer.get("monetization_type", "").upper() not in STREAMING_MONETIZATION_TYPES:
            continue
        slug = PROVIDER_SLUGS.get(offer.get("provider"))
        if slug:
            slugs.add(slug)
    return slugs


class JustWatchClient:
    """Client for the JustWatch GraphQL API"""

    def __init__(self, country=DEFAULT_COUNTRY, language=DEFAULT_LANGUAGE, timeout=30):
        self.country = country
        self.language = language
        self.timeout = timeout

    def _post(self, operation: str, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """Run a GraphQL operation and return its ``data`` payload"""
        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        payload = {"operationName": operation, "query": query, "variables": variables}

        logger.debug(f"JustWatch {operation} {variables}")

        try:
            response = requests.post(JUSTWATCH_GRAPHQL_URL, json=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise AvailabilityLookupError(f"JustWatch request failed: {e}") from e

        if response.status_code == 429:
            raise RateLimitError("JustWatch rate limit reached (429)", status_code=429)

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise AvailabilityLookupError(
                f"JustWatch returned HTTP {response.status_code}", status_code=response.status_code
            ) from e

        try:
            body = response.json()
        except ValueError as e:
            raise AvailabilityLookupError("JustWatch returned invalid JSON") from e

        if body.get("errors"):
            messages = "; ".join(err.get("message", "unknown error") for err in body["errors"])
            raise AvailabilityLookupError(f"JustWatch GraphQL error: {messages}")

        return body.get("data") or {}

    def search_title(self, name: str, kind: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Search JustWatch by name and return the best match.

        Args:
            name: Free-text title name
            kind: "movie" or "tv" to restrict the search, None for both

        Returns:
            Dict with id, title, object_type, full_path, poster and offers,
            or None if nothing matched
        """
        object_types = ["MOVIE", "SHOW"]
        if kind == "movie":
            object_types = ["MOVIE"]
        elif kind == "tv":
            object_types = ["SHOW"]

        data = self._post(
            "GetSearchTitles",
            SEARCH_TITLES_QUERY,
            {
                "searchTitlesFilter": {"searchQuery": name, "objectTypes": object_types},
                "country": self.country,
                "language": self.language,
                "first": 5,
            },
        )

        edges = (data.get("popularTitles") or {}).get("edges") or []
        if not edges:
            return None

        node = edges[0].get("node") or {}
        content = node.get("content") or {}
        return {
            "id": node.get("id"),
            "title": content.get("title"),
            "object_type": "tv" if node.get("objectType") == "SHOW" else "movie",
            "full_path": content.get("fullPath"),
            "poster": content.get("posterUrl"),
            "offers": parse_offers(node.get("offers")),
        }

    def get_offers_by_path(self, full_path: str) -> List[Dict[str, str]]:
        """Fetch offers for the title at a canonical JustWatch path"""
        data = self._post("GetUrlTitleDetails", URL_TITLE_QUERY, {"fullPath": full_path, "country": self.country})
        node = (data.get("urlV2") or {}).get("node")
        if not node:
            raise TitleNotFoundError(f"No JustWatch title at {full_path}")
        return parse_offers(node.get("offers"))

    def get_offers_by_name(self, name: str, kind: Optional[str] = None) -> List[Dict[str, str]]:
        """Fetch offers for the first search hit for a name"""
        match = self.search_title(name, kind)
        if not match:
            raise TitleNotFoundError(f"No JustWatch match for '{name}'")
        return match["offers"]

    def get_title_offers(self, title) -> List[Dict[str, str]]:
        """Fetch offers for a Title, preferring its full path over a name search"""
        if title.full_path:
            return self.get_offers_by_path(title.full_path)

        logger.debug(f"No full path for {title.name}, falling back to name search")
        return self.get_offers_by_name(title.name, title.type)

"""
Scryfall Card Lookup

Resolves corrected card names against the Scryfall API.
"""

import logging
from typing import Dict, Optional

import requests

from .base import CardLookup
from ..vision.result import CardInfo


logger = logging.getLogger(__name__)

SCRYFALL_NAMED_URL = "https://api.scryfall.com/cards/named"
REQUEST_TIMEOUT = 6.0
HEADERS = {
    "User-Agent": "collection-scanner/1.0",
    "Accept": "application/json",
}


class ScryfallLookup(CardLookup):
    """
    Fuzzy card-name lookup with an in-memory cache.

    Misses are cached too, so a name that Scryfall does not know is only
    requested once per session.
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = REQUEST_TIMEOUT):
        self._session = session or requests.Session()
        self._session.headers.update(HEADERS)
        self._timeout = timeout
        self._cache: Dict[str, Optional[CardInfo]] = {}

    def lookup(self, name: str) -> Optional[CardInfo]:
        key = name.strip().lower()
        if not key:
            return None
        if key in self._cache:
            return self._cache[key]

        try:
            response = self._session.get(
                SCRYFALL_NAMED_URL,
                params={"fuzzy": name.strip()},
                timeout=self._timeout
            )
        except requests.RequestException as e:
            raise LookupError(f"Scryfall request failed for '{name}': {e}") from e

        if response.status_code == 404:
            logger.debug(f"Scryfall: no card named '{name}'")
            self._cache[key] = None
            return None

        try:
            response.raise_for_status()
            data = response.json()
        except (requests.HTTPError, ValueError) as e:
            raise LookupError(f"Scryfall returned an unusable response for '{name}': {e}") from e

        card = CardInfo(
            id=str(data.get("id", "")),
            name=data.get("name", name),
            set_code=data.get("set", ""),
            set_name=data.get("set_name", ""),
            rarity=data.get("rarity", ""),
            collector_number=str(data.get("collector_number", "")),
        )
        self._cache[key] = card
        return card

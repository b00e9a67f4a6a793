from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .fetch import FetchError, fetch_playlist
from .m3u import HEADER_MARKER, AttributeMap, MalformedPlaylist, parse_playlist
from .models import Live

# Flux de rafraîchissement d'un abonnement : téléchargement -> parsing -> remplacement en base.

logger = logging.getLogger(__name__)


class RefreshError(Exception):
    """Échec d'un refresh, message affichable tel quel à l'utilisateur."""
    def __init__(self, subscription_url: str, message: str):
        super().__init__(message)
        self.subscription_url = subscription_url


@dataclass
class RefreshResult:
    subscription_url: str
    count: int
    skipped: int = 0


class SubscriptionService:
    """
    Orchestration des abonnements. Le fetcher et le stockage sont passés
    explicitement (un Storage, ou tout objet exposant la même interface).
    """

    def __init__(
        self,
        store,
        fetcher: Callable[[str], str] = fetch_playlist,
        attribute_map: Optional[AttributeMap] = None,
        header_marker: str = HEADER_MARKER,
    ):
        self.store = store
        self.fetcher = fetcher
        self.attribute_map = attribute_map
        self.header_marker = header_marker

    def subscribe(self, url: str, title: str = "") -> RefreshResult:
        url = (url or "").strip()
        if not url:
            raise ValueError("subscription url must not be empty")
        self.store.add_subscription(url, title)
        return self.refresh(url)

    def refresh(self, url: str) -> RefreshResult:
        try:
            text = self.fetcher(url)
        except FetchError as e:
            logger.warning("refresh %s: download failed: %s", url, e)
            raise RefreshError(url, f"Téléchargement impossible : {e}") from e

        try:
            result = parse_playlist(
                text, url, attribute_map=self.attribute_map, header_marker=self.header_marker
            )
        except MalformedPlaylist as e:
            logger.warning("refresh %s: malformed playlist: %s", url, e)
            raise RefreshError(url, f"Playlist invalide : {e}") from e

        count = self.store.replace_lives(url, result.lives)
        logger.info("refresh %s: %d lives (%d skipped)", url, count, result.skipped)
        return RefreshResult(subscription_url=url, count=count, skipped=result.skipped)

    def unsubscribe(self, url: str) -> None:
        self.store.delete_subscription(url)

    def lives(self, url: str) -> list[Live]:
        return self.store.get_lives(url)

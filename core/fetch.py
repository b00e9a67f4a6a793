from __future__ import annotations

from pathlib import Path
from typing import Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

import requests

# Récupération du texte brut d'une playlist (HTTP(S), file:// ou chemin local).

DEFAULT_TIMEOUT = 20
USER_AGENT = "m3u-live/1.0"


class FetchError(Exception):
    def __init__(self, url: str, message: str):
        super().__init__(f"{url}: {message}")
        self.url = url


def fetch_playlist(
    url: str,
    *,
    session: Optional[requests.Session] = None,
    timeout: float = DEFAULT_TIMEOUT,
    user_agent: str = USER_AGENT,
) -> str:
    parsed = urlparse(url)

    if parsed.scheme in ("http", "https"):
        headers = {"User-Agent": user_agent}
        try:
            r = (session or requests).get(url, timeout=timeout, headers=headers)
            r.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise FetchError(url, "timeout") from e
        except requests.RequestException as e:
            raise FetchError(url, str(e) or type(e).__name__) from e
        # requests devine souvent ISO-8859-1 pour text/plain : on force l'UTF-8.
        return r.content.decode("utf-8-sig", errors="replace")

    path = Path(url2pathname(parsed.path)) if parsed.scheme == "file" else Path(url)
    try:
        return path.read_text(encoding="utf-8", errors="ignore")
    except OSError as e:
        raise FetchError(url, str(e)) from e

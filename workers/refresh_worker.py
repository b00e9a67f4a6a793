from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, Optional, Union

from core.subscriptions import RefreshResult, SubscriptionService

# Worker : rafraîchit plusieurs abonnements en parallèle via un pool borné.

logger = logging.getLogger(__name__)

Outcome = Union[RefreshResult, Exception]


class RefreshWorker:
    """Runs subscription refreshes in a thread pool, reporting an outcome per URL."""

    def __init__(
        self,
        service: SubscriptionService,
        urls: Iterable[str],
        max_workers: int = 4,
        on_progress: Optional[Callable[[int, int], None]] = None,
        on_error: Optional[Callable[[str, Exception], None]] = None,
    ):
        self.service = service
        self.urls = list(dict.fromkeys(u for u in urls if u))
        self.max_workers = max(1, int(max_workers))
        self.on_progress = on_progress
        self.on_error = on_error
        self._stop = False

    def stop(self):
        self._stop = True

    def run(self) -> dict[str, Outcome]:
        total = len(self.urls)
        done = 0
        outcomes: dict[str, Outcome] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_map = {}
            for url in self.urls:
                if self._stop:
                    break
                future_map[executor.submit(self.service.refresh, url)] = url

            for fut in as_completed(future_map):
                if self._stop:
                    executor.shutdown(wait=False, cancel_futures=True)
                    break
                url = future_map[fut]
                try:
                    outcomes[url] = fut.result()
                except Exception as e:
                    # Un abonnement en échec n'interrompt pas les autres.
                    logger.warning("refresh %s failed: %s", url, e)
                    outcomes[url] = e
                    if self.on_error:
                        self.on_error(url, e)
                done += 1
                if self.on_progress:
                    self.on_progress(done, total)

        return outcomes

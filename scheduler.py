from __future__ import annotations
import logging
import threading
from typing import Callable, List, Optional

import config
from models import Game

logger = logging.getLogger(__name__)


class TimeoutWatcher:
    """Polls ``store.games.find_timed_out_games`` and hands each hit to ``on_timeout``.

    Lives outside the store; the store only answers the query.
    """

    def __init__(self, store, on_timeout: Callable[[Game], None], interval: Optional[float] = None):
        self.store = store
        self.on_timeout = on_timeout
        self.interval = config.TIMEOUT_POLL_SECONDS if interval is None else interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def poll_once(self) -> List[Game]:
        games = self.store.games.find_timed_out_games()
        for game in games:
            logger.info("game %s phase %s timed out", game.id, game.current_phase)
            self.on_timeout(game)
        return games

    def _loop(self):
        while not self._stop.is_set():
            try: self.poll_once()
            except Exception:
                logger.exception("timeout poll failed")
            self._stop.wait(self.interval)

    def start(self):
        if self._thread and self._thread.is_alive(): return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="timeout-watcher", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread: self._thread.join(timeout); self._thread = None

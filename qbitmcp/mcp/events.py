"""
Background poller that turns backend state changes into server events.

Every interval it fetches the incremental sync/maindata snapshot of each
instance and queues a notification the first time a torrent finishes.
"""

import asyncio
from typing import Dict, Optional, Set, Tuple

from ..client import BackendError
from .logger import get_logger

logger = get_logger("qbitmcp-events")

TORRENT_FINISHED = "notifications/torrent_finished"
RESOURCE_UPDATED = "notifications/resources/updated"

FINISHED_STATES = frozenset({"uploading", "stalledUP", "queuedUP", "forcedUP"})


def is_finished(torrent: dict) -> bool:
    progress = torrent.get("progress")
    if isinstance(progress, (int, float)) and not isinstance(progress, bool) and progress >= 1:
        return True
    return torrent.get("state") in FINISHED_STATES


class TorrentEventPoller:
    """
    Polls every instance of an MCPServer and pushes onto ``server.events``.

    Args:
        server: MCPServer whose clients are polled
        interval: Seconds between polls
    """

    def __init__(self, server, interval: float):
        self.server = server
        self.interval = interval
        self._rids: Dict[str, int] = {}
        self._notified: Set[Tuple[str, str]] = set()
        self._task: Optional[asyncio.Task] = None

    async def poll_once(self) -> int:
        """Poll each instance once. Returns the number of finish events queued."""
        queued = 0
        for instance, client in list(self.server.clients.items()):
            try:
                data = await client.get_main_data(self._rids.get(instance, 0))
            except BackendError as e:
                logger.warning("Event poll failed for instance %s: %s", instance, e)
                continue

            if not isinstance(data, dict):
                continue
            rid = data.get("rid")
            if isinstance(rid, int):
                self._rids[instance] = rid

            torrents = data.get("torrents")
            if not isinstance(torrents, dict):
                continue
            for torrent_hash, torrent in torrents.items():
                if not isinstance(torrent, dict) or not is_finished(torrent):
                    continue
                key = (instance, torrent_hash)
                if key in self._notified:
                    continue
                self._notified.add(key)
                self._push_finished(instance, torrent_hash, torrent.get("name") or torrent_hash)
                queued += 1
        return queued

    def _push_finished(self, instance: str, torrent_hash: str, name: str) -> None:
        logger.info("Torrent finished on %s: %s", instance, name)
        self.server.events.push(
            TORRENT_FINISHED,
            {"instance": instance, "hash": torrent_hash, "name": name},
        )
        self.server.events.push(
            RESOURCE_UPDATED, {"uri": f"qbittorrent://{instance}/torrents"}
        )

    async def run(self) -> None:
        """Poll forever; sleeps one interval before the first poll."""
        logger.info("Event poller started (interval %.1fs)", self.interval)
        while True:
            await asyncio.sleep(self.interval)
            await self.poll_once()

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="torrent-event-poller")
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Event poller stopped")

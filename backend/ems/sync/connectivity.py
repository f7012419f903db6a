from __future__ import annotations
import logging
from typing import Optional

from ems.sync.queue import FlushResult, OfflineReplayQueue, RemoteSave

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    """Tracks online state and flushes the replay queue when connectivity returns."""

    def __init__(self, queue: OfflineReplayQueue, remote_save: RemoteSave, online: bool = True):
        self.queue = queue
        self.remote_save = remote_save
        self.online = online

    def set_online(self, online: bool) -> Optional[FlushResult]:
        was_online, self.online = self.online, bool(online)
        if self.online and not was_online:
            logger.info('connectivity restored; flushing %d queued report(s)', len(self.queue))
            return self.flush_now()
        if was_online and not self.online:
            logger.warning('connectivity lost; edits will be queued')
        return None

    def flush_now(self) -> FlushResult:
        return self.queue.flush(self.remote_save)


__all__ = ['ConnectivityMonitor']

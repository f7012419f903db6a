from __future__ import annotations
"""Offline replay queue for report edits made without connectivity.

Entries are whole report documents kept in order under one key of a
``KeyValueStore``. ``flush`` replays from the head and stops at the first
failure so successive edits of one report reach the server in order. Each
step is its own read-modify-write of the stored list: the head is dropped only
after its save succeeded, so an interruption can cause a repeated save (the
server upserts by id) but never a lost entry.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ems.errors import EmsError, PersistenceError
from ems.services.records import Report
from ems.sync.ports import KeyValueStore

logger = logging.getLogger(__name__)

QUEUE_KEY = 'offlineQueue'

RemoteSave = Callable[[Report], Any]


@dataclass
class FlushResult:
    saved: List[str] = field(default_factory=list)
    remaining: int = 0
    error: Optional[EmsError] = None
    skipped: bool = False

    @property
    def complete(self) -> bool:
        return self.error is None and not self.skipped and self.remaining == 0


class OfflineReplayQueue:
    def __init__(self, store: KeyValueStore, key: str = QUEUE_KEY):
        self.store = store
        self.key = key
        self._flush_lock = threading.Lock()

    def _raw(self) -> List[Dict[str, Any]]:
        return list(self.store.get(self.key) or [])

    def __len__(self):
        return len(self._raw())

    def enqueue(self, report: Report) -> int:
        entries = self._raw()
        entries.append(report.to_dict())
        self.store.set(self.key, entries)
        logger.info('queued report %s for replay (%d pending)', report.id, len(entries))
        return len(entries)

    def entries(self) -> List[Report]:
        return [Report.from_dict(e) for e in self._raw()]

    def pending_ids(self) -> List[str]:
        return [e.get('id') for e in self._raw()]

    def _drop_head(self, report_id: str) -> int:
        entries = self._raw()
        if entries and entries[0].get('id') == report_id:
            entries.pop(0)
            self.store.set(self.key, entries)
        return len(entries)

    def flush(self, remote_save: RemoteSave) -> FlushResult:
        """Replay queued reports in order; stop at the first failed save."""
        if not self._flush_lock.acquire(blocking=False):
            logger.debug('flush already running; skipped')
            return FlushResult(remaining=len(self), skipped=True)
        try:
            result = FlushResult()
            while True:
                entries = self._raw()
                if not entries:
                    break
                head = Report.from_dict(entries[0])
                try:
                    remote_save(head)
                except EmsError as exc:
                    logger.warning('replay of report %s failed, %d left queued: %s', head.id, len(entries), exc.detail)
                    result.error = exc
                    result.remaining = len(entries)
                    return result
                result.saved.append(head.id)
                self._drop_head(head.id)
            if result.saved:
                logger.info('replayed %d queued report(s)', len(result.saved))
            return result
        finally:
            self._flush_lock.release()

    def merge_into(self, reports: List[Report]) -> List[Report]:
        """Overlay queued (not yet synced) versions onto freshly fetched reports.

        The last queued version of a report wins; reports that are only in the
        queue are not added.
        """
        latest = {r.id: r for r in self.entries()}
        return [latest.get(r.id, r) for r in reports]


def save_or_enqueue(report: Report, remote_save: RemoteSave, queue: OfflineReplayQueue) -> bool:
    """Save now, or divert to the queue when the remote is unreachable.

    Returns True when saved remotely, False when queued.
    """
    try:
        remote_save(report)
    except PersistenceError as exc:
        logger.info('remote save of %s failed (%s); diverting to offline queue', report.id, exc.detail)
        queue.enqueue(report)
        return False
    return True


__all__ = ['OfflineReplayQueue', 'FlushResult', 'save_or_enqueue', 'QUEUE_KEY']

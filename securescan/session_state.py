"""
In-memory progress registry for running scans.

Background scan tasks publish their status here and the progress endpoint
reads it, so clients can poll without hitting the database on every step.
"""
import logging
import threading
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Set

logger = logging.getLogger(__name__)


@dataclass
class SessionProgress:
    status: str
    progress: int = 0
    current_step: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ScanSessionState:
    """Thread-safe per-scan progress store with cancellation flags."""

    def __init__(self):
        self._sessions: Dict[str, SessionProgress] = {}
        self._cancelled: Set[str] = set()
        self._lock = threading.Lock()

    def create(self, scan_id: str, status: str = "pending") -> SessionProgress:
        with self._lock:
            self._cancelled.discard(scan_id)
            session = SessionProgress(status=status)
            self._sessions[scan_id] = session
            return SessionProgress(**session.to_dict())

    def update(self, scan_id: str, status: Optional[str] = None,
               progress: Optional[int] = None, current_step: Optional[str] = None) -> bool:
        """
        Record a status change for a scan.

        Unknown and cancelled scans are ignored. Progress never moves
        backwards and is kept within 0-100.

        Returns:
            True if the session was updated.
        """
        with self._lock:
            session = self._sessions.get(scan_id)
            if session is None or scan_id in self._cancelled:
                return False
            if status is not None:
                session.status = status
            if progress is not None:
                session.progress = max(session.progress, min(100, max(0, int(progress))))
            session.current_step = current_step
            return True

    def get(self, scan_id: str) -> Optional[SessionProgress]:
        """Return a copy of the session, or None if it is not tracked."""
        with self._lock:
            session = self._sessions.get(scan_id)
            return SessionProgress(**session.to_dict()) if session else None

    def delete(self, scan_id: str) -> None:
        """Forget a finished scan, including its cancellation flag."""
        with self._lock:
            self._sessions.pop(scan_id, None)
            self._cancelled.discard(scan_id)

    def cancel(self, scan_id: str) -> bool:
        """Flag a tracked scan as cancelled. Returns False if it isn't tracked."""
        with self._lock:
            session = self._sessions.get(scan_id)
            if session is None:
                return False
            self._cancelled.add(scan_id)
            session.status = "failed"
            session.current_step = None
        logger.info("Scan %s cancelled", scan_id)
        return True

    def is_cancelled(self, scan_id: str) -> bool:
        with self._lock:
            return scan_id in self._cancelled


scan_sessions = ScanSessionState()

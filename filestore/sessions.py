"""
Upload session bookkeeping.

Each backend instance owns one registry. A session is registered by
initialize_upload and removed by complete_upload or abort_upload, so a
later call with the same id is reported as stale.
"""
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

from filestore.base import CHUNK_SIZE, UploadSessionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadSession:
    upload_id: str
    object_path: str
    chunk_size: int = CHUNK_SIZE
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class UploadSessionRegistry:
    """Thread-safe map of upload id to UploadSession."""

    def __init__(self):
        self._sessions: Dict[str, UploadSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, upload_id: str) -> bool:
        with self._lock:
            return upload_id in self._sessions

    def register(self, session: UploadSession) -> UploadSession:
        with self._lock:
            self._sessions[session.upload_id] = session
        logger.debug("Registered upload %s for %s", session.upload_id, session.object_path)
        return session

    def get(self, upload_id: str) -> Optional[UploadSession]:
        with self._lock:
            return self._sessions.get(upload_id)

    def require(self, upload_id: str, object_path: str) -> UploadSession:
        """
        Look up a session and check it belongs to object_path.

        Raises:
            UploadSessionError: If the id is unknown, stale or registered
                for another path
        """
        session = self.get(upload_id)
        if session is None:
            raise UploadSessionError(
                f"Unknown or stale upload id: {upload_id}",
                path=object_path,
                upload_id=upload_id
            )
        if session.object_path != object_path:
            raise UploadSessionError(
                f"Upload {upload_id} belongs to {session.object_path}, not {object_path}",
                path=object_path,
                upload_id=upload_id
            )
        return session

    def discard(self, upload_id: str) -> Optional[UploadSession]:
        with self._lock:
            session = self._sessions.pop(upload_id, None)
        if session is not None:
            logger.debug("Discarded upload %s", upload_id)
        return session

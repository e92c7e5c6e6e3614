"""Recognition activity bookkeeping and dashboard statistics."""
import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from facerecog.core.config import settings
from facerecog.core.exceptions import PersistenceError
from facerecog.core.logging import get_logger
from facerecog.domain.entities.identity import Identity, RecognitionEvent
from facerecog.domain.interfaces.storage.gallery_store import GalleryStore
from facerecog.domain.models.storage.identity import StoredRecognitionRecord
from facerecog.domain.value_objects.recognition import FrameResult, SystemStats
from facerecog.services.gallery import Gallery

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecognitionLog:
    """Persistent history of recognition events, newest first."""

    def __init__(self, store: GalleryStore, key: str) -> None:
        self._store = store
        self._key = key
        self._events: Tuple[RecognitionEvent, ...] = ()
        self._write_lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._events)

    def events(self) -> Tuple[RecognitionEvent, ...]:
        return self._events

    def for_identity(self, identity_id: str) -> List[RecognitionEvent]:
        return [event for event in self._events if event.user_id == identity_id]

    async def load(self) -> None:
        blob = await self._store.get(self._key)
        events: List[RecognitionEvent] = []
        for raw in blob if isinstance(blob, list) else []:
            try:
                events.append(StoredRecognitionRecord.model_validate(raw).to_event())
            except (ValueError, TypeError) as e:
                logger.error("Skipping malformed recognition record", key=self._key, error=str(e))
        events.sort(key=lambda event: event.timestamp, reverse=True)
        async with self._write_lock:
            self._events = tuple(events)
        logger.info("Loaded recognition log", key=self._key, events=len(events))

    async def append(self, event: RecognitionEvent) -> None:
        async with self._write_lock:
            events = sorted(self._events + (event,), key=lambda e: e.timestamp, reverse=True)
            await self._save(tuple(events))

    async def prune(self, retention_days: int, now: Optional[datetime] = None) -> int:
        """Drop events older than ``retention_days``. Returns the number removed."""
        cutoff = (now or _utcnow()) - timedelta(days=retention_days)
        async with self._write_lock:
            kept = tuple(event for event in self._events if event.timestamp >= cutoff)
            removed = len(self._events) - len(kept)
            if removed:
                await self._save(kept)
        if removed:
            logger.info("Pruned recognition log", removed=removed, retention_days=retention_days)
        return removed

    async def clear(self) -> None:
        async with self._write_lock:
            await self._store.delete(self._key)
            self._events = ()

    async def _save(self, events: Tuple[RecognitionEvent, ...]) -> None:
        blob = [StoredRecognitionRecord.from_event(event).to_json() for event in events]
        await self._store.set(self._key, blob)
        self._events = events


class ActivityRecorder:
    """Recognition loop listener that keeps per-identity activity up to date.

    For every matched face it bumps the identity's counter and last-seen time
    and appends a recognition event, at most once per identity per cooldown
    window. Unknown faces are ignored.

    Example:
        ```python
        recorder = ActivityRecorder(gallery, recognition_log)
        loop.add_listener(recorder.on_result)
        ```
    """

    def __init__(
        self,
        gallery: Gallery,
        log: RecognitionLog,
        location: Optional[str] = None,
        cooldown_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.gallery = gallery
        self.log = log
        self.location = location or settings.RECOGNITION_LOCATION
        self.cooldown = timedelta(
            seconds=settings.RECOGNITION_COOLDOWN_SECONDS if cooldown_seconds is None else cooldown_seconds
        )
        self.clock = clock
        self._last_logged: Dict[str, datetime] = {}

    async def on_result(self, result: FrameResult) -> None:
        now = self.clock()
        for face in result.matches:
            identity = face.result.identity
            last = self._last_logged.get(identity.id)
            if last is not None and now - last < self.cooldown:
                continue
            try:
                await self.record(identity, face.result.confidence, now)
            except PersistenceError as e:
                logger.error("Failed to record recognition", identity_id=identity.id, error=str(e))

    async def record(self, identity: Identity, confidence: float, when: datetime) -> Optional[RecognitionEvent]:
        """Record one recognition of ``identity``.

        Returns:
            The logged event, or None if the identity left the gallery meanwhile

        Raises:
            PersistenceError: If the gallery or the log could not be saved
        """
        updated = await self.gallery.record_sighting(identity.id, when)
        if updated is None:
            return None
        event = RecognitionEvent(
            id=f"rec-{uuid.uuid4().hex}",
            user_id=identity.id,
            timestamp=when,
            confidence=confidence,
            location=self.location,
        )
        await self.log.append(event)
        self._last_logged[identity.id] = when
        logger.info(
            "Recognised identity",
            identity_id=identity.id,
            name=identity.name,
            confidence=round(confidence, 1),
            location=self.location
        )
        return event


def compute_stats(
    identities: Sequence[Identity],
    events: Sequence[RecognitionEvent],
    now: Optional[datetime] = None,
) -> SystemStats:
    """Aggregate dashboard figures.

    ``active_today`` counts distinct identities recognised since midnight of
    ``now``'s day, in ``now``'s timezone.
    """
    now = now or _utcnow()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    average = sum(event.confidence for event in events) / len(events) if events else 0.0
    active = {event.user_id for event in events if event.timestamp >= midnight}
    return SystemStats(
        total_users=len(identities),
        total_recognitions=len(events),
        average_confidence=average,
        active_today=len(active),
    )

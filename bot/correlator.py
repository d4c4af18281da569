"""Turns incoming photo messages into homework submissions.

Telegram delivers an album as independent messages that share a
``media_group_id``; only one of them (usually, but not always, the first)
carries the caption. The caption is remembered per album so that members
arriving after it can be filed under the same subject. Members processed
before the captioned one cannot be resolved and are rejected.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Set, Tuple

from telegram import Message

from services.exceptions import TransportError
from services.schedule_store import ScheduleStore
from .utils import next_day_name, now_in, subject_label

logger = logging.getLogger(__name__)


class CaptionCache:
    """Album id -> most recent caption, reset wholesale every ``ttl_seconds``.

    There is no per-entry expiry. All access goes through one lock.
    """

    def __init__(self, ttl_seconds: float = 3600, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._captions: Dict[str, str] = {}
        self._acknowledged: Set[str] = set()
        self._lock = threading.Lock()
        self._last_reset = clock()

    def _expire_locked(self) -> None:
        now = self._clock()
        if now - self._last_reset >= self.ttl_seconds:
            if self._captions:
                logger.info(f"Resetting caption cache ({len(self._captions)} albums)")
            self._captions = {}
            self._acknowledged = set()
            self._last_reset = now

    def get(self, group_id: str) -> Optional[str]:
        with self._lock:
            self._expire_locked()
            return self._captions.get(group_id)

    def put(self, group_id: str, caption: str) -> None:
        with self._lock:
            self._expire_locked()
            self._captions[group_id] = caption

    def clear(self) -> None:
        with self._lock:
            self._captions = {}
            self._acknowledged = set()
            self._last_reset = self._clock()

    def resolve(self, group_id: Optional[str], own_caption: Optional[str]) -> Optional[str]:
        """Caption for a message: its own, else the one cached for its album.

        An own caption on an album member is cached in the same critical
        section so concurrent members never miss it.
        """
        with self._lock:
            self._expire_locked()
            if own_caption:
                if group_id:
                    self._captions[group_id] = own_caption
                return own_caption
            if group_id:
                return self._captions.get(group_id)
            return None

    def first_acknowledgement(self, group_id: str) -> bool:
        """True exactly once per album until the next reset."""
        with self._lock:
            self._expire_locked()
            if group_id in self._acknowledged:
                return False
            self._acknowledged.add(group_id)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._captions)


@dataclass(frozen=True)
class PhotoEvent:
    """The parts of an incoming message the correlator looks at."""
    user_id: str
    username: Optional[str]
    chat_id: int
    file_ids: Tuple[str, ...] = ()  # resolution variants, smallest first
    caption: Optional[str] = None
    media_group_id: Optional[str] = None

    @property
    def has_photo(self) -> bool:
        return bool(self.file_ids)

    @property
    def in_album(self) -> bool:
        return bool(self.media_group_id)

    @classmethod
    def from_message(cls, message: Message) -> "PhotoEvent":
        sizes = sorted(message.photo or (), key=lambda size: size.width * size.height)
        return cls(
            user_id=str(message.from_user.id),
            username=message.from_user.username,
            chat_id=message.chat_id,
            file_ids=tuple(size.file_id for size in sizes),
            caption=(message.caption or "").strip() or None,
            media_group_id=message.media_group_id,
        )


class ResolutionStatus(Enum):
    """What to do with an incoming message."""
    NO_PHOTO = "no_photo"
    NEED_CAPTION = "need_caption"
    READY = "ready"


@dataclass(frozen=True)
class Resolution:
    status: ResolutionStatus
    subject: Optional[str] = None
    day: Optional[str] = None
    # False for album members after the first unless they carry the caption
    acknowledge: bool = True


class SubmissionCorrelator:
    """Resolves subject and target day for photos and files them."""

    def __init__(
        self,
        store: ScheduleStore,
        cache: CaptionCache,
        download: Callable[[str], Awaitable[bytes]],
        timezone: str = "Europe/Moscow",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.cache = cache
        self._download = download
        self._clock = clock or (lambda: now_in(timezone))

    def resolve(self, event: PhotoEvent) -> Resolution:
        if not event.has_photo:
            return Resolution(ResolutionStatus.NO_PHOTO)

        caption = self.cache.resolve(event.media_group_id, event.caption)
        if not caption:
            logger.info(f"No caption for photo from user {event.user_id} (album {event.media_group_id})")
            return Resolution(ResolutionStatus.NEED_CAPTION)

        return Resolution(
            ResolutionStatus.READY,
            subject=subject_label(caption),
            day=next_day_name(self._clock()),
            acknowledge=self._should_acknowledge(event),
        )

    def _should_acknowledge(self, event: PhotoEvent) -> bool:
        if not event.in_album:
            return True
        first = self.cache.first_acknowledgement(event.media_group_id)
        return first or bool(event.caption)

    async def submit(self, event: PhotoEvent, resolution: Resolution) -> str:
        """Fetch the largest photo variant and file it; returns the submission id.

        Raises TransportError, NotFound or StoreError.
        """
        file_id = event.file_ids[-1]
        try:
            photo = await self._download(file_id)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(f"failed to download {file_id}: {e}") from e

        return await self.store.record_submission(event.user_id, resolution.day, resolution.subject, photo)

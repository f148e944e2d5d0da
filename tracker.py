"""Per-user progress through the challenge calendar.

The tracker owns the in-memory ``ChallengeState`` (day key -> DayStatus) and is
the only thing that mutates it. The document store is a durable mirror: every
local mutation is written through with a merge upsert, and every snapshot the
store delivers is overlaid onto a fresh all-zero state.
"""
import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import date
from typing import Callable, Dict, Optional

from errors import AuthenticationError, DayLockedError, StorageWriteError
from store import document_path

logger = logging.getLogger(__name__)

# ── Lock reasons ──────────────────────────────────────────────────────────────
LOADING = "loading"
OUT_OF_RANGE = "out_of_range"
PREVIOUS_INCOMPLETE = "previous_incomplete"
NOT_YET_OPEN = "not_yet_open"

LOCK_MESSAGES = {
    LOADING:             "Your data is still loading. Please try again in a moment.",
    OUT_OF_RANGE:        "There is no such day in this challenge.",
    PREVIOUS_INCOMPLETE: "Please complete the previous day's prayer and declaration first!",
    NOT_YET_OPEN:        "This day is not open yet.",
}


@dataclass(frozen=True)
class DayStatus:
    count: int = 0
    completed: bool = False
    prayer_completed: bool = False

    def to_record(self):
        return {
            "count": self.count,
            "completed": self.completed,
            "prayerCompleted": self.prayer_completed,
        }

    def overlay(self, record, max_count):
        """Return a copy with the usable fields of a persisted ``record`` applied."""
        if not isinstance(record, dict):
            return self
        count = record.get("count", self.count)
        # bool is an int subclass; a stray true/false is not a count
        if not isinstance(count, int) or isinstance(count, bool) or count < 0:
            count = self.count
        completed = record.get("completed", self.completed)
        if not isinstance(completed, bool):
            completed = self.completed
        prayer = record.get("prayerCompleted", self.prayer_completed)
        if not isinstance(prayer, bool):
            prayer = self.prayer_completed
        return DayStatus(
            count=count,
            completed=completed or count >= max_count,
            prayer_completed=prayer,
        )


def initial_state(day_count) -> Dict[str, DayStatus]:
    return {str(day): DayStatus() for day in range(1, day_count + 1)}


def merge_snapshot(snapshot, day_count, max_count) -> Dict[str, DayStatus]:
    """Build a total state from a possibly partial or stale snapshot.

    Keys outside ``1..day_count`` are ignored; missing days stay at zero.
    """
    state = initial_state(day_count)
    if not isinstance(snapshot, Mapping):
        return state
    for key, record in snapshot.items():
        if key in state:
            state[key] = state[key].overlay(record, max_count)
    return state


class ProgressTracker:
    def __init__(self, identity, store, settings, app_id,
                 host_token: Optional[str] = None,
                 today: Optional[Callable[[], date]] = None):
        self.identity = identity
        self.store = store
        self.settings = settings
        self.app_id = app_id
        self.host_token = host_token
        self.today = today or date.today

        self.user_id = None
        self.loading = True
        self.selected_day = None
        self.challenge_complete = False
        self.statuses = initial_state(settings.day_count)

        self._unsubscribe_identity = None
        self._unsubscribe_snapshot = None
        self._closed = False

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self):
        self._unsubscribe_identity = self.identity.on_user_changed(self._on_user_changed)
        return self

    def close(self):
        """Release identity and snapshot subscriptions."""
        self._closed = True
        if self._unsubscribe_snapshot is not None:
            self._unsubscribe_snapshot()
            self._unsubscribe_snapshot = None
        if self._unsubscribe_identity is not None:
            self._unsubscribe_identity()
            self._unsubscribe_identity = None

    def __enter__(self):
        return self.start()

    def __exit__(self, *exc_info):
        self.close()

    def _on_user_changed(self, uid):
        if self._closed:
            return
        if uid is None:
            try:
                if self.host_token:
                    uid = self.identity.sign_in_with_token(self.host_token)
                else:
                    uid = self.identity.sign_in_anonymously()
            except AuthenticationError as exc:
                logger.error("Authentication failed: %s", exc)
                self._set_user(None)
                self.loading = False
                return
        self._set_user(uid)
        self.loading = False

    def _set_user(self, uid):
        if uid == self.user_id:
            return
        if self._unsubscribe_snapshot is not None:
            self._unsubscribe_snapshot()
            self._unsubscribe_snapshot = None
        self.user_id = uid
        self.selected_day = None
        self.challenge_complete = False
        self.statuses = initial_state(self.settings.day_count)
        if uid is not None:
            self._unsubscribe_snapshot = self.store.subscribe(
                self.document_path, self._on_snapshot, self._on_snapshot_error
            )

    def _on_snapshot(self, snapshot):
        if self._closed:
            return
        self.statuses = merge_snapshot(
            snapshot, self.settings.day_count, self.settings.max_declaration_count
        )

    def _on_snapshot_error(self, exc):
        if self._closed:
            return
        logger.error("Error fetching day statuses: %s", exc)
        self.statuses = initial_state(self.settings.day_count)

    @property
    def document_path(self):
        return document_path(self.app_id, self.user_id, self.settings.instance_key)

    # ── Queries ───────────────────────────────────────────────────────────────

    @property
    def day_count(self):
        return self.settings.day_count

    def status(self, day) -> DayStatus:
        return self.statuses[str(day)]

    def day_fully_completed(self, day):
        status = self.status(day)
        if not status.completed:
            return False
        return status.prayer_completed or not self.settings.require_prayer

    def lock_reason(self, day):
        """Why ``day`` cannot be opened, or None when it is unlocked."""
        if self.user_id is None:
            return LOADING
        if not 1 <= day <= self.day_count:
            return OUT_OF_RANGE
        if day > 1 and not self.day_fully_completed(day - 1):
            return PREVIOUS_INCOMPLETE
        if self.settings.date_gated and self.settings.date_of(day) > self.today():
            return NOT_YET_OPEN
        return None

    def is_unlocked(self, day):
        return self.lock_reason(day) is None

    @property
    def is_finished(self):
        return self.day_fully_completed(self.day_count)

    # ── Actions ───────────────────────────────────────────────────────────────

    def _require_unlocked(self, day):
        reason = self.lock_reason(day)
        if reason is not None:
            raise DayLockedError(day, reason, LOCK_MESSAGES[reason])

    def select_day(self, day):
        """Open ``day`` for interaction. Raises DayLockedError when it is locked."""
        self._require_unlocked(day)
        self.selected_day = day
        return self.status(day)

    def close_day(self):
        self.selected_day = None

    def declare(self, day):
        """Record one repetition of the day's declaration."""
        self._require_unlocked(day)
        current = self.status(day)
        if current.completed:
            return current
        count = current.count + 1
        updated = replace(
            current,
            count=count,
            completed=count >= self.settings.max_declaration_count,
        )
        self._apply(day, updated)
        return updated

    def pray(self, day):
        """Mark the day's prayer as done."""
        if not self.settings.require_prayer:
            raise ValueError("Prayer is not tracked in this challenge.")
        self._require_unlocked(day)
        current = self.status(day)
        if current.prayer_completed:
            return current
        updated = replace(current, prayer_completed=True)
        self._apply(day, updated)
        return updated

    def _apply(self, day, updated):
        key = str(day)
        self.statuses = {**self.statuses, key: updated}
        self._persist(key, updated)
        self._check_challenge_complete(day)

    def _persist(self, key, status):
        try:
            self.store.upsert(self.document_path, {key: status.to_record()})
        except StorageWriteError as exc:
            # TODO: queue failed writes and replay them on the next snapshot
            logger.error("Error saving day %s status: %s", key, exc)

    def _check_challenge_complete(self, day):
        # Shared by declare and pray; either may finish the last day
        if day == self.day_count and self.is_finished:
            self.challenge_complete = True

    def snapshot(self):
        """JSON-ready view of every day."""
        return [
            {
                "day": day,
                **self.status(day).to_record(),
                "fullyCompleted": self.day_fully_completed(day),
                "unlocked": self.is_unlocked(day),
            }
            for day in range(1, self.day_count + 1)
        ]

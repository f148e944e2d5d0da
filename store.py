"""Document store collaborator backed by Flask-SQLAlchemy.

Documents are JSON objects addressed by a slash-separated path. Subscribers
get the current record as soon as they subscribe and again after every
committed upsert to the same path made on the thread that subscribed, so a
request only hears about its own writes. ``None`` means the document is absent.
"""
import logging
import threading

from sqlalchemy.exc import SQLAlchemyError

from errors import StorageReadError, StorageWriteError
from models import db, ChallengeDocument

logger = logging.getLogger(__name__)


def document_path(app_id, uid, instance_key):
    """Path of a user's challenge status document."""
    return "/".join(["artifacts", app_id, "users", uid, "challenge_status", instance_key])


def merge_documents(current, partial):
    """Merge ``partial`` into ``current`` one level deep and return a new dict.

    Nested objects are merged field by field so that writing one field of a
    day record leaves its other fields untouched.
    """
    merged = dict(current or {})
    for key, value in partial.items():
        existing = merged.get(key)
        if isinstance(value, dict) and isinstance(existing, dict):
            merged[key] = {**existing, **value}
        else:
            merged[key] = value
    return merged


class DocumentStore:
    def __init__(self, session=None):
        self._session = session
        self._listeners = {}
        self._lock = threading.Lock()

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def get(self, path):
        """Return the document at ``path`` or None. Raises StorageReadError."""
        try:
            doc = self.session.execute(
                db.select(ChallengeDocument).filter_by(path=path)
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StorageReadError(f"Could not read {path}: {exc}") from exc
        if doc is None:
            return None
        if not isinstance(doc.data, dict):
            raise StorageReadError(f"Document at {path} is not a JSON object.")
        return dict(doc.data)

    def subscribe(self, path, on_next, on_error=None):
        """Register for snapshots of ``path``; returns an unsubscribe callable."""
        entry = (on_next, on_error, threading.get_ident())
        with self._lock:
            self._listeners.setdefault(path, []).append(entry)

        def unsubscribe():
            with self._lock:
                listeners = self._listeners.get(path, [])
                if entry in listeners:
                    listeners.remove(entry)
                if not listeners:
                    self._listeners.pop(path, None)

        self._deliver(path, [entry])
        return unsubscribe

    def upsert(self, path, partial):
        """Merge ``partial`` into the document at ``path``, creating it if absent."""
        try:
            doc = self.session.execute(
                db.select(ChallengeDocument).filter_by(path=path)
            ).scalar_one_or_none()
            if doc is None:
                doc = ChallengeDocument(path=path, data=merge_documents({}, partial))
                self.session.add(doc)
            else:
                # JSON columns only track reassignment, not in-place mutation
                current = doc.data if isinstance(doc.data, dict) else {}
                doc.data = merge_documents(current, partial)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageWriteError(f"Could not write {path}: {exc}") from exc

        with self._lock:
            thread = threading.get_ident()
            listeners = [entry for entry in self._listeners.get(path, []) if entry[2] == thread]
        self._deliver(path, listeners)

    def listener_count(self, path):
        with self._lock:
            return len(self._listeners.get(path, []))

    def _deliver(self, path, listeners):
        if not listeners:
            return
        try:
            snapshot = self.get(path)
        except StorageReadError as exc:
            logger.error("Snapshot read failed for %s: %s", path, exc)
            for _, on_error, _ in listeners:
                if on_error is not None:
                    on_error(exc)
            return
        for on_next, _, _ in listeners:
            on_next(dict(snapshot) if snapshot is not None else None)

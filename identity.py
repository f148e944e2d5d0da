"""Identity collaborator.

The signed-in uid lives in a per-device mapping (the Flask session in the web
app). Accounts are rows in the ``account`` table; pre-issued tokens are
itsdangerous signatures over the uid, keyed by the configured API key.
"""
import logging
import uuid

from itsdangerous import BadSignature, URLSafeSerializer
from sqlalchemy.exc import SQLAlchemyError

from errors import AuthenticationError
from models import db, Account

logger = logging.getLogger(__name__)

SESSION_UID_KEY = "uid"
TOKEN_SALT = "challenge-custom-token"


class SessionIdentity:
    def __init__(self, session, secret):
        self._session = session
        self._serializer = URLSafeSerializer(secret, salt=TOKEN_SALT)
        self._listeners = []
        self._uid = self._restore()

    def _restore(self):
        uid = self._session.get(SESSION_UID_KEY)
        if not uid:
            return None
        if db.session.get(Account, uid) is None:
            logger.warning("Dropping session uid %s with no matching account", uid)
            self._session.pop(SESSION_UID_KEY, None)
            return None
        return uid

    @property
    def current_uid(self):
        return self._uid

    def on_user_changed(self, callback):
        """Call ``callback(uid_or_None)`` now and on every sign-in or sign-out.

        Returns a callable that removes the listener.
        """
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        callback(self._uid)
        return unsubscribe

    def _set_uid(self, uid):
        if uid is None:
            self._session.pop(SESSION_UID_KEY, None)
        else:
            self._session[SESSION_UID_KEY] = uid
        self._uid = uid
        for callback in list(self._listeners):
            callback(uid)

    def sign_in_anonymously(self):
        account = Account(uid=uuid.uuid4().hex, is_anonymous=True)
        try:
            db.session.add(account)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise AuthenticationError(f"Anonymous sign-in failed: {exc}") from exc
        logger.info("Signed in anonymous account %s", account.uid)
        self._set_uid(account.uid)
        return account.uid

    def sign_in_with_token(self, token):
        if not isinstance(token, str) or not token:
            raise AuthenticationError("Sign-in token is missing.")
        try:
            uid = self._serializer.loads(token)
        except BadSignature as exc:
            raise AuthenticationError("Sign-in token is invalid.") from exc
        if not isinstance(uid, str) or not uid:
            raise AuthenticationError("Sign-in token carries no user id.")
        try:
            if db.session.get(Account, uid) is None:
                db.session.add(Account(uid=uid, is_anonymous=False))
                db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise AuthenticationError(f"Token sign-in failed: {exc}") from exc
        logger.info("Signed in account %s with token", uid)
        self._set_uid(uid)
        return uid

    def sign_out(self):
        if self._uid is not None:
            logger.info("Signed out %s", self._uid)
        self._set_uid(None)

    def issue_token(self, uid):
        """Return a token that ``sign_in_with_token`` accepts for ``uid``."""
        return self._serializer.dumps(uid)

from flask_sqlalchemy import SQLAlchemy
from datetime import datetime, timezone

db = SQLAlchemy()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Account(db.Model):
    """An identity issued by the sign-in flow. Carries no profile data."""
    __tablename__ = "account"

    uid = db.Column(db.String(64), primary_key=True)
    is_anonymous = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self):
        kind = "anon" if self.is_anonymous else "token"
        return f"<Account {self.uid} {kind}>"


class ChallengeDocument(db.Model):
    """One schemaless document, addressed by its slash-separated path."""
    __tablename__ = "challenge_document"

    id = db.Column(db.Integer, primary_key=True)
    path = db.Column(db.String(512), unique=True, nullable=False, index=True)
    data = db.Column(db.JSON, nullable=False, default=dict)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False,
                           default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<ChallengeDocument {self.path}>"

import logging
from collections.abc import Mapping
from functools import wraps
from flask import Blueprint, Flask, current_app, g, jsonify, redirect, request, session, url_for

from config import load_config, today_local
from content import leading_blank_days, load_content
from errors import AuthenticationError, ConfigurationError, DayLockedError, ValidationError
from identity import SessionIdentity
from models import db
from registration import ProfileStorage, build_profile
from store import DocumentStore
from tracker import LOADING, OUT_OF_RANGE, ProgressTracker

logger = logging.getLogger(__name__)

EXTENSION_KEY = "challenge"

CONFIG_ERROR_BODY = {
    "error": "configuration",
    "message": "There is a problem with the app configuration. "
               "Check that the deployment environment variables are set correctly.",
}

LOCK_STATUS_CODES = {
    LOADING: 503,
    OUT_OF_RANGE: 404,
}

bp = Blueprint("challenge", __name__)


class ChallengeExtension:
    """Per-app collaborators shared by every request."""

    def __init__(self, config, content, store):
        self.config = config
        self.content = content
        self.store = store

    @property
    def settings(self):
        return self.config.settings


# ── Helpers ───────────────────────────────────────────────────────────────────

def challenge():
    return current_app.extensions[EXTENSION_KEY]


def profile_storage():
    return ProfileStorage(session, challenge().settings.storage_key_prefix)


def current_profile():
    """Return the registered UserProfile, or None."""
    return profile_storage().load()


def get_tracker():
    """Open this request's tracker; it is closed when the app context tears down."""
    if "tracker" not in g:
        ext = challenge()
        settings = ext.settings
        g.tracker = ProgressTracker(
            identity=SessionIdentity(session, ext.config.api_key),
            store=ext.store,
            settings=settings,
            app_id=ext.config.app_id,
            host_token=ext.config.initial_auth_token,
            today=lambda: today_local(settings.tz_offset_hours),
        ).start()
    return g.tracker


def close_tracker(exc=None):
    tracker = g.pop("tracker", None)
    if tracker is not None:
        tracker.close()


def request_data():
    """The JSON object or form fields of the request body."""
    data = request.get_json(silent=True)
    if data is None:
        return request.form
    if not isinstance(data, Mapping):
        raise ValidationError("The request body must be a JSON object.")
    return data


def profile_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        if current_profile() is None:
            return jsonify({"error": "unregistered",
                            "message": "Please register your group and name first."}), 401
        return f(*args, **kwargs)
    return decorated


def lock_response(exc):
    status = LOCK_STATUS_CODES.get(exc.reason, 409)
    return jsonify({"error": exc.reason, "message": str(exc), "day": exc.day}), status


def day_payload(tracker, day):
    content = challenge().content
    status = tracker.status(day)
    return {
        "day": day,
        "date": challenge().settings.date_of(day).isoformat(),
        "declaration": content.declaration_for(day),
        "prayerTopic": content.prayer_topic_for(day),
        "maxCount": challenge().settings.max_declaration_count,
        **status.to_record(),
        "fullyCompleted": tracker.day_fully_completed(day),
        "challengeComplete": tracker.challenge_complete,
    }


def profile_payload(profile):
    return {"displayName": profile.display_name, "groupName": profile.group_name}


# ── Routes ────────────────────────────────────────────────────────────────────

@bp.route("/")
def index():
    settings = challenge().settings
    profile = current_profile()
    if profile is None:
        return jsonify({"registered": False, "groupSuffix": settings.group_suffix})
    tracker = get_tracker()
    return jsonify({
        "registered": True,
        "profile": profile_payload(profile),
        "userId": tracker.user_id,
        "loading": tracker.user_id is None,
        "year": settings.year,
        "month": settings.month,
        "leadingBlankDays": leading_blank_days(settings.year, settings.month),
        "requirePrayer": settings.require_prayer,
        "days": tracker.snapshot(),
        "finished": tracker.is_finished,
    })


@bp.route("/register", methods=["POST"])
def register():
    try:
        data = request_data()
        profile = build_profile(
            data.get("display_name", ""),
            data.get("group_name", ""),
            challenge().settings.group_suffix,
        )
    except ValidationError as exc:
        return jsonify({"error": "validation", "message": str(exc)}), 400
    profile_storage().save(profile)
    logger.info("Registered %s / %s", profile.group_name, profile.display_name)
    return jsonify({"registered": True, "profile": profile_payload(profile)})


@bp.route("/auth/token", methods=["POST"])
def token_sign_in():
    try:
        data = request_data()
    except ValidationError as exc:
        return jsonify({"error": "validation", "message": str(exc)}), 400
    token = data.get("token", "")
    identity = SessionIdentity(session, challenge().config.api_key)
    try:
        uid = identity.sign_in_with_token(token)
    except AuthenticationError as exc:
        logger.error("Authentication failed: %s", exc)
        return jsonify({"error": "authentication", "message": str(exc)}), 401
    return jsonify({"userId": uid})


@bp.route("/logout", methods=["POST"])
def logout():
    SessionIdentity(session, challenge().config.api_key).sign_out()
    profile_storage().clear()
    return redirect(url_for("challenge.index"))


@bp.route("/days/<int:day>")
@profile_required
def select_day(day):
    tracker = get_tracker()
    try:
        tracker.select_day(day)
    except DayLockedError as exc:
        return lock_response(exc)
    return jsonify(day_payload(tracker, day))


@bp.route("/days/<int:day>/declare", methods=["POST"])
@profile_required
def declare(day):
    tracker = get_tracker()
    try:
        tracker.declare(day)
    except DayLockedError as exc:
        return lock_response(exc)
    return jsonify(day_payload(tracker, day))


@bp.route("/days/<int:day>/pray", methods=["POST"])
@profile_required
def pray(day):
    if not challenge().settings.require_prayer:
        return jsonify({"error": "not_tracked",
                        "message": "Prayer is not tracked in this challenge."}), 404
    tracker = get_tracker()
    try:
        tracker.pray(day)
    except DayLockedError as exc:
        return lock_response(exc)
    return jsonify(day_payload(tracker, day))


# ── App factory ───────────────────────────────────────────────────────────────

def _refuse_to_operate():
    return jsonify(CONFIG_ERROR_BODY), 503


def create_app(host_globals=None, environ=None, content=None):
    app = Flask(__name__)
    content = content or load_content()

    try:
        config = load_config(host_globals, environ, day_count=content.day_count)
    except ConfigurationError as exc:
        logger.error("%s The app will not connect to the database.", exc)
        app.config["CONFIGURATION_ERROR"] = str(exc)
        app.before_request(_refuse_to_operate)
        return app

    app.config["SECRET_KEY"] = config.secret_key
    app.config["SQLALCHEMY_DATABASE_URI"] = config.database_url
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.json.ensure_ascii = False

    db.init_app(app)
    app.extensions[EXTENSION_KEY] = ChallengeExtension(config, content, DocumentStore())
    app.register_blueprint(bp)
    app.teardown_appcontext(close_tracker)

    with app.app_context():
        db.create_all()

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    create_app().run(debug=True)

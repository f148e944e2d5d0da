import os
import json
import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from collections.abc import Mapping
from typing import Optional

from errors import ConfigurationError

# ── Host globals / environment names ──────────────────────────────────────────
# A hosting shell may inject these globals; they win over the environment.
HOST_CONFIG_KEY = "__challenge_config"
HOST_APP_ID_KEY = "__app_id"
HOST_AUTH_TOKEN_KEY = "__initial_auth_token"

CREDENTIAL_ENV_VARS = {
    "api_key":             "CHALLENGE_API_KEY",
    "auth_domain":         "CHALLENGE_AUTH_DOMAIN",
    "project_id":          "CHALLENGE_PROJECT_ID",
    "storage_bucket":      "CHALLENGE_STORAGE_BUCKET",
    "messaging_sender_id": "CHALLENGE_MESSAGING_SENDER_ID",
    "app_id":              "CHALLENGE_APP_ID_KEY",
}

# Host configs use the camelCase names of the hosted provider's SDK
_HOST_FIELD_NAMES = {
    "apiKey":            "api_key",
    "authDomain":        "auth_domain",
    "projectId":         "project_id",
    "storageBucket":     "storage_bucket",
    "messagingSenderId": "messaging_sender_id",
    "appId":             "app_id",
}

DEFAULT_APP_ID = "doodeurim-challenge-app"

basedir = os.path.abspath(os.path.dirname(__file__))


@dataclass(frozen=True)
class ChallengeSettings:
    year: int = 2025
    month: int = 10  # 1-indexed; October
    day_count: int = 31
    max_declaration_count: int = 5
    require_prayer: bool = True
    date_gated: bool = False
    group_suffix: str = "셀"
    storage_key_prefix: str = "doodeurimChallenge"
    tz_offset_hours: int = 9  # KST

    @property
    def instance_key(self) -> str:
        """Key of this challenge run in the document path, e.g. ``october2025``."""
        return f"{calendar.month_name[self.month].lower()}{self.year}"

    def date_of(self, day: int) -> date:
        return date(self.year, self.month, day)


@dataclass(frozen=True)
class AppConfig:
    credentials: Mapping[str, str]
    app_id: str = DEFAULT_APP_ID
    initial_auth_token: Optional[str] = None
    secret_key: str = "dev-secret-key-change-in-production"
    database_url: str = ""
    settings: ChallengeSettings = field(default_factory=ChallengeSettings)

    @property
    def api_key(self) -> str:
        return self.credentials["api_key"]


def today_local(offset_hours: int) -> date:
    """Return the current date shifted by ``offset_hours`` from UTC."""
    return (datetime.now(timezone.utc) + timedelta(hours=offset_hours)).date()


def _int_env(environ, name, default):
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _bool_env(environ, name, default):
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _host_credentials(raw):
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise ConfigurationError(f"Host configuration is not valid JSON: {exc}")
    if not isinstance(raw, Mapping):
        raise ConfigurationError("Host configuration must be a JSON object.")
    return {ours: raw.get(theirs) for theirs, ours in _HOST_FIELD_NAMES.items()}


def load_settings(environ=None, day_count=31) -> ChallengeSettings:
    environ = os.environ if environ is None else environ
    month = _int_env(environ, "CHALLENGE_MONTH", 10)
    if not 1 <= month <= 12:
        raise ConfigurationError(f"CHALLENGE_MONTH must be 1-12, got {month}")
    max_count = _int_env(environ, "MAX_DECLARATION_COUNT", 5)
    if max_count < 1:
        raise ConfigurationError("MAX_DECLARATION_COUNT must be at least 1.")
    year = _int_env(environ, "CHALLENGE_YEAR", 2025)
    if day_count > calendar.monthrange(year, month)[1]:
        raise ConfigurationError(
            f"{day_count} declarations do not fit in {calendar.month_name[month]} {year}."
        )
    return ChallengeSettings(
        year=year,
        month=month,
        day_count=day_count,
        max_declaration_count=max_count,
        require_prayer=_bool_env(environ, "REQUIRE_PRAYER", True),
        date_gated=_bool_env(environ, "DATE_GATED", False),
        group_suffix=environ.get("GROUP_SUFFIX", "셀"),
        tz_offset_hours=_int_env(environ, "TZ_OFFSET_HOURS", 9),
    )


def load_config(host_globals=None, environ=None, day_count=31) -> AppConfig:
    """Resolve the app configuration.

    Host-injected globals take priority over environment variables. Raises
    ConfigurationError when neither yields an API key.
    """
    host_globals = host_globals or {}
    environ = os.environ if environ is None else environ

    if host_globals.get(HOST_CONFIG_KEY):
        credentials = _host_credentials(host_globals[HOST_CONFIG_KEY])
    else:
        credentials = {name: environ.get(var) for name, var in CREDENTIAL_ENV_VARS.items()}

    if not credentials.get("api_key"):
        raise ConfigurationError("Credential configuration is missing or incomplete.")

    return AppConfig(
        credentials=credentials,
        app_id=host_globals.get(HOST_APP_ID_KEY) or DEFAULT_APP_ID,
        initial_auth_token=host_globals.get(HOST_AUTH_TOKEN_KEY) or None,
        secret_key=environ.get("SECRET_KEY", "dev-secret-key-change-in-production"),
        database_url=environ.get(
            "DATABASE_URL",
            "sqlite:///" + os.path.join(basedir, "challenge.db"),
        ),
        settings=load_settings(environ, day_count=day_count),
    )

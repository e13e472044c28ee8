import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

MOCK_MODE = "mock"
OAUTH_MODE = "oauth"
_MODE_ALIASES = {"mock": MOCK_MODE, "oauth": OAUTH_MODE, "google": OAUTH_MODE}


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_csv(value: str | None, default: str = "") -> list[str]:
    items = [item.strip() for item in (value or default).split(",")]
    return [item for item in items if item]


def _get_mode(value: str | None) -> str:
    raw = (value or MOCK_MODE).strip().lower()
    mode = _MODE_ALIASES.get(raw)
    if mode is None:
        logger.warning("Unknown AUTH_MODE %r, falling back to mock authentication.", raw)
        return MOCK_MODE
    return mode


APP_ENV = os.getenv("APP_ENV", "development")
IS_PRODUCTION = APP_ENV.lower() == "production"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

AUTH_MODE = _get_mode(os.getenv("AUTH_MODE"))

SESSION_SECRET = os.getenv("SESSION_SECRET", "change-me")
SESSION_MAX_AGE_SECONDS = int(os.getenv("SESSION_MAX_AGE_SECONDS", str(30 * 24 * 60 * 60)))
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "studesq_session")
OAUTH_SESSION_COOKIE_NAME = os.getenv("OAUTH_SESSION_COOKIE_NAME", "studesq_oauth_session")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
OIDC_DISCOVERY_URL = os.getenv(
    "OIDC_DISCOVERY_URL",
    "https://accounts.google.com/.well-known/openid-configuration",
)
OIDC_CLIENT_ID = os.getenv("OIDC_CLIENT_ID", "")
OIDC_CLIENT_SECRET = os.getenv("OIDC_CLIENT_SECRET", "")

UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(os.getcwd(), "uploads"))
MAX_UPLOAD_SIZE = int(os.getenv("MAX_UPLOAD_SIZE", "10485760"))
ALLOWED_EXTENSIONS = _get_csv(os.getenv("ALLOWED_EXTENSIONS"), ".pdf,.jpg,.jpeg,.png")

ENABLE_WAITLIST_STORE = _get_bool(os.getenv("ENABLE_WAITLIST_STORE"), default=False)
ENABLE_EARLY_FOUNDER_BADGE = _get_bool(os.getenv("ENABLE_EARLY_FOUNDER_BADGE"), default=True)

CORS_ORIGINS = _get_csv(os.getenv("CORS_ORIGINS"), "http://localhost:3000")


@dataclass(frozen=True)
class AuthSettings:
    """Process-wide authentication settings handed to the session layer."""

    mode: str
    session_secret: str
    session_max_age: int = 30 * 24 * 60 * 60
    session_cookie_name: str = "studesq_session"
    oauth_cookie_name: str = "studesq_oauth_session"
    cookie_secure: bool = False
    jwt_algorithm: str = "HS256"
    public_base_url: str = "http://localhost:8000"
    oidc_discovery_url: str = ""
    oidc_client_id: str = ""
    oidc_client_secret: str = ""

    @property
    def is_mock_mode(self) -> bool:
        return self.mode == MOCK_MODE

    @property
    def is_oauth_mode(self) -> bool:
        return self.mode == OAUTH_MODE

    @property
    def oidc_redirect_uri(self) -> str:
        return f"{self.public_base_url}/auth/oauth/callback"


@lru_cache(maxsize=1)
def load_auth_settings() -> AuthSettings:
    return AuthSettings(
        mode=AUTH_MODE,
        session_secret=SESSION_SECRET,
        session_max_age=SESSION_MAX_AGE_SECONDS,
        session_cookie_name=SESSION_COOKIE_NAME,
        oauth_cookie_name=OAUTH_SESSION_COOKIE_NAME,
        cookie_secure=IS_PRODUCTION,
        jwt_algorithm=JWT_ALGORITHM,
        public_base_url=PUBLIC_BASE_URL,
        oidc_discovery_url=OIDC_DISCOVERY_URL,
        oidc_client_id=OIDC_CLIENT_ID,
        oidc_client_secret=OIDC_CLIENT_SECRET,
    )


def configure_logging() -> None:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def validate_runtime_config() -> None:
    if IS_PRODUCTION and SESSION_SECRET == "change-me":
        raise RuntimeError("SESSION_SECRET must be set in production.")
    if AUTH_MODE == OAUTH_MODE and not (OIDC_CLIENT_ID and OIDC_CLIENT_SECRET):
        raise RuntimeError("OIDC_CLIENT_ID and OIDC_CLIENT_SECRET are required when AUTH_MODE=oauth.")

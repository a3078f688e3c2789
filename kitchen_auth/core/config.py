import os

from dotenv import load_dotenv

# Carrega o .env da raiz do projeto
load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./kitchen_auth.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

# Auth (JWT). One secret per token family; refresh tokens share a single secret.
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_SECRET = os.getenv("JWT_SECRET", "") or "default-jwt-secret-change-in-production"
JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", "") or "default-refresh-secret-change-in-production"
TEAM_JWT_SECRET = os.getenv("TEAM_JWT_SECRET", "") or os.getenv("JWT_SECRET", "") or "default-team-jwt-secret"
HEAD_CHEF_JWT_SECRET = (
    os.getenv("HEAD_CHEF_JWT_SECRET", "") or os.getenv("JWT_SECRET", "") or "default-head-chef-jwt-secret"
)

SESSION_TIMEOUT = _env_int("SESSION_TIMEOUT", 3600)
TEAM_SESSION_TIMEOUT = _env_int("TEAM_SESSION_TIMEOUT", 7200)
REFRESH_TOKEN_EXPIRY = _env_int("REFRESH_TOKEN_EXPIRY", 365 * 24 * 3600)

# Brute-force protection
MAX_LOGIN_ATTEMPTS = _env_int("MAX_LOGIN_ATTEMPTS", 5)
ACCOUNT_LOCKOUT_DURATION = _env_int("ACCOUNT_LOCKOUT_DURATION", 900)
LOCKOUT_BACKEND = os.getenv("LOCKOUT_BACKEND", "memory").strip().lower()
if LOCKOUT_BACKEND not in {"memory", "database"}:
    LOCKOUT_BACKEND = "memory"
AUTH_FAILURE_DELAY_MIN_MS = _env_int("AUTH_FAILURE_DELAY_MIN_MS", 500)
AUTH_FAILURE_DELAY_MAX_MS = _env_int("AUTH_FAILURE_DELAY_MAX_MS", 1500)
TRUST_FORWARDED_FOR = _env_flag("TRUST_FORWARDED_FOR")

# Convites de equipe
CHEF_INVITE_SECRET = os.getenv("CHEF_INVITE_SECRET", "") or "default-chef-invite-secret"
INVITE_MAX_AGE_SECONDS = _env_int("INVITE_MAX_AGE_SECONDS", 7 * 24 * 3600)

DEVELOPMENT_DEFAULT_SECRETS = {
    "JWT_SECRET": JWT_SECRET,
    "JWT_REFRESH_SECRET": JWT_REFRESH_SECRET,
    "TEAM_JWT_SECRET": TEAM_JWT_SECRET,
    "HEAD_CHEF_JWT_SECRET": HEAD_CHEF_JWT_SECRET,
    "CHEF_INVITE_SECRET": CHEF_INVITE_SECRET,
}

# cargo_tracker/core/config.py
import os
from dataclasses import dataclass

from dotenv import load_dotenv


def str_to_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def merge_unique(items: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in items:
        if v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out


GOOGLE_ISSUERS = ("https://accounts.google.com", "accounts.google.com")


@dataclass(frozen=True)
class Settings:
    """
    Process-wide configuration. Built once at start-up and handed to
    create_app(); request code reads it from app.state, never from the module.
    """

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: tuple[str, ...] = ()

    # ----------------------------
    # Document store
    # ----------------------------
    DOCUMENT_STORE: str = "memory"  # dynamodb | memory
    DYNAMODB_TABLE: str = ""
    DYNAMODB_ENDPOINT_URL: str = ""
    AWS_REGION: str = ""

    # ----------------------------
    # OAuth / OIDC (Google)
    # ----------------------------
    OAUTH_CLIENT_ID: str = ""
    OAUTH_CLIENT_SECRET: str = ""
    OAUTH_ISSUERS: tuple[str, ...] = GOOGLE_ISSUERS
    OAUTH_JWKS_URL: str = "https://www.googleapis.com/oauth2/v3/certs"
    OAUTH_AUTHORIZE_URL: str = "https://accounts.google.com/o/oauth2/v2/auth"
    OAUTH_TOKEN_URL: str = "https://oauth2.googleapis.com/token"
    OAUTH_PROFILE_URL: str = "https://people.googleapis.com/v1/people/me?personFields=names"
    OAUTH_SCOPE: str = "https://www.googleapis.com/auth/userinfo.profile"
    JWKS_CACHE_SECONDS: int = 0
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # ----------------------------
    # Listings
    # ----------------------------
    BOATS_PAGE_SIZE: int = 5
    LOADS_PAGE_SIZE: int = 3
    BOATS_PUBLIC_LISTING: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        env = os.getenv("ENV", "dev").strip().lower()  # dev | prod
        if env != "prod":
            # Load .env only for non-prod so prod can't be accidentally influenced by local files.
            load_dotenv()

        dev_defaults = ["http://localhost:8080", "http://127.0.0.1:8080"]
        cors_from_env = parse_csv(os.getenv("CORS_ORIGINS"))
        if env == "prod":
            cors = merge_unique(cors_from_env)
        else:
            cors = merge_unique(cors_from_env + dev_defaults)

        default_store = "dynamodb" if env == "prod" else "memory"

        settings = cls(
            ENV=env,
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
            CORS_ORIGINS=tuple(cors),
            DOCUMENT_STORE=os.getenv("DOCUMENT_STORE", default_store).strip().lower(),
            DYNAMODB_TABLE=os.getenv("DYNAMODB_TABLE", ""),
            DYNAMODB_ENDPOINT_URL=os.getenv("DYNAMODB_ENDPOINT_URL", ""),
            AWS_REGION=os.getenv("AWS_REGION", ""),
            OAUTH_CLIENT_ID=os.getenv("OAUTH_CLIENT_ID", ""),
            OAUTH_CLIENT_SECRET=os.getenv("OAUTH_CLIENT_SECRET", ""),
            OAUTH_ISSUERS=tuple(parse_csv(os.getenv("OAUTH_ISSUERS"))) or GOOGLE_ISSUERS,
            OAUTH_JWKS_URL=os.getenv("OAUTH_JWKS_URL", cls.OAUTH_JWKS_URL),
            OAUTH_AUTHORIZE_URL=os.getenv("OAUTH_AUTHORIZE_URL", cls.OAUTH_AUTHORIZE_URL),
            OAUTH_TOKEN_URL=os.getenv("OAUTH_TOKEN_URL", cls.OAUTH_TOKEN_URL),
            OAUTH_PROFILE_URL=os.getenv("OAUTH_PROFILE_URL", cls.OAUTH_PROFILE_URL),
            OAUTH_SCOPE=os.getenv("OAUTH_SCOPE", cls.OAUTH_SCOPE),
            JWKS_CACHE_SECONDS=int(os.getenv("JWKS_CACHE_SECONDS", "0")),
            HTTP_TIMEOUT_SECONDS=float(os.getenv("HTTP_TIMEOUT_SECONDS", "10")),
            BOATS_PAGE_SIZE=int(os.getenv("BOATS_PAGE_SIZE", "5")),
            LOADS_PAGE_SIZE=int(os.getenv("LOADS_PAGE_SIZE", "3")),
            BOATS_PUBLIC_LISTING=str_to_bool(os.getenv("BOATS_PUBLIC_LISTING"), default=True),
        )
        settings._validate_prod()
        return settings

    def _validate_prod(self) -> None:
        if self.ENV != "prod":
            return

        missing: list[str] = []

        if not self.OAUTH_CLIENT_ID:
            missing.append("OAUTH_CLIENT_ID")
        if not self.OAUTH_CLIENT_SECRET:
            missing.append("OAUTH_CLIENT_SECRET")
        if not self.DYNAMODB_TABLE:
            missing.append("DYNAMODB_TABLE")
        if not self.AWS_REGION:
            missing.append("AWS_REGION")
        if not self.CORS_ORIGINS:
            missing.append("CORS_ORIGINS")

        if self.DOCUMENT_STORE != "dynamodb":
            raise RuntimeError("DOCUMENT_STORE must be 'dynamodb' in prod")

        cors_joined = ",".join(self.CORS_ORIGINS)
        if "localhost" in cors_joined or "127.0.0.1" in cors_joined:
            raise RuntimeError("CORS_ORIGINS contains localhost/dev origins in prod")

        if missing:
            raise RuntimeError(f"Missing required prod env vars: {', '.join(missing)}")

    @property
    def is_prod(self) -> bool:
        return self.ENV == "prod"

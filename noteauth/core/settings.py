"""Application settings loaded from environment variables."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

HTTP_TIMEOUT_DEFAULT = 10.0
JWT_LEEWAY_DEFAULT = 60
JWKS_TTL_DEFAULT = 600
JWKS_MIN_REFRESH_INTERVAL_DEFAULT = 30
KEY_FETCH_TIMEOUT_DEFAULT = 5.0
STATE_TTL_DEFAULT = 600
DB_POOL_SIZE_DEFAULT = 5
DB_MAX_OVERFLOW_DEFAULT = 10
DB_PORT_DEFAULT = 5432


class DatabaseSettings(BaseSettings):
    """PostgreSQL connection settings for the notes and user stores."""

    model_config = SettingsConfigDict(env_prefix="NOTES_DB_")

    url: str = ""
    host: str = "localhost"
    port: int = DB_PORT_DEFAULT
    user: str = "notes"
    password: str = "notes"
    database: str = "notes"
    pool_size: int = DB_POOL_SIZE_DEFAULT
    max_overflow: int = DB_MAX_OVERFLOW_DEFAULT

    @property
    def async_url(self) -> str:
        """Build async connection URL, preferring an explicit override."""
        if self.url:
            return self.url
        return (
            f"postgresql+asyncpg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


class IdpSettings(BaseSettings):
    """Primary OIDC identity provider (hosted login, code exchange, logout)."""

    model_config = SettingsConfigDict(env_prefix="IDP_")

    env_url: str = ""
    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = ""
    post_logout_redirect_uri: str = "http://localhost:3000"
    issuer: str = ""
    audience: str = ""
    scopes: str = "openid profile email offline_access"
    authorize_path: str = "/oauth/authorize"
    token_path: str = "/oauth/token"
    jwks_path: str = "/keys"
    discovery_path: str = "/.well-known/openid-configuration"
    leeway: int = JWT_LEEWAY_DEFAULT
    http_timeout: float = HTTP_TIMEOUT_DEFAULT

    @property
    def base_url(self) -> str:
        """Environment URL without a trailing slash."""
        return self.env_url.rstrip("/")

    @property
    def resolved_issuer(self) -> str:
        """Token issuer, defaulting to the environment URL."""
        return self.issuer or self.base_url

    @property
    def resolved_audience(self) -> str:
        """Access-token audience, defaulting to the client id."""
        return self.audience or self.client_id


class JwtSettings(BaseSettings):
    """Remote-JWKS bearer verification (Auth0-style tenant)."""

    model_config = SettingsConfigDict(env_prefix="JWT_")

    domain: str = ""
    audience: str = ""
    issuer: str = ""
    jwks_url: str = ""
    algorithms: list[str] = ["RS256"]
    leeway: int = JWT_LEEWAY_DEFAULT
    jwks_ttl: int = JWKS_TTL_DEFAULT
    jwks_min_refresh_interval: int = JWKS_MIN_REFRESH_INTERVAL_DEFAULT
    key_fetch_timeout: float = KEY_FETCH_TIMEOUT_DEFAULT

    @property
    def resolved_issuer(self) -> str:
        """Configured issuer, defaulting to ``https://{domain}/``."""
        if self.issuer:
            return self.issuer
        if not self.domain:
            return ""
        return f"https://{self.domain}/"

    @property
    def resolved_jwks_url(self) -> str:
        """Configured JWKS URL, defaulting to the tenant's well-known set."""
        if self.jwks_url:
            return self.jwks_url
        if not self.domain:
            return ""
        return f"https://{self.domain}/.well-known/jwks.json"


class OAuthSettings(BaseSettings):
    """Secondary OAuth2 provider resolved into local accounts."""

    model_config = SettingsConfigDict(env_prefix="OAUTH_")

    provider: str = "mcp"
    authorize_url: str = ""
    token_url: str = ""
    userinfo_url: str = ""
    callback_url: str = ""
    client_id: str = ""
    client_secret: str = ""
    scopes: str = ""


class AuthSettings(BaseSettings):
    """Strategy selection and service-wide auth behaviour."""

    model_config = SettingsConfigDict(env_prefix="AUTH_")

    strategy: Literal["jwks", "session"] = "jwks"
    require_state: bool = True
    state_ttl: int = STATE_TTL_DEFAULT
    cors_origins: str = ""
    log_level: str = "info"
    log_json: bool = True

    def get_cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins."""
        if not self.cors_origins:
            return []
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


class AppSettings:
    """Bundle of every settings group, read once at application start."""

    def __init__(
        self,
        *,
        auth: AuthSettings | None = None,
        idp: IdpSettings | None = None,
        jwt: JwtSettings | None = None,
        oauth: OAuthSettings | None = None,
        database: DatabaseSettings | None = None,
    ) -> None:
        self.auth = auth or AuthSettings()
        self.idp = idp or IdpSettings()
        self.jwt = jwt or JwtSettings()
        self.oauth = oauth or OAuthSettings()
        self.database = database or DatabaseSettings()

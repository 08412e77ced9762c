import os


class Config:
    """Base configuration. Shared across all environments."""

    # --- Required ---
    SECRET_KEY = os.environ.get("SECRET_KEY")

    # Handle DATABASE_URL: some PaaS providers (Railway, Heroku) use
    # "postgres://" which SQLAlchemy 1.4+ doesn't accept.
    _db_url = os.environ.get("DATABASE_URL", "")
    if _db_url.startswith("postgres://"):
        _db_url = _db_url.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = _db_url or None

    APP_BASE_URL = os.environ.get("APP_BASE_URL", "http://localhost:5000")

    # --- QuickBooks Online OAuth ---
    QBO_CLIENT_ID = os.environ.get("QBO_CLIENT_ID")
    QBO_CLIENT_SECRET = os.environ.get("QBO_CLIENT_SECRET")
    QBO_REDIRECT_URI = os.environ.get(
        "QBO_REDIRECT_URI", f"{APP_BASE_URL}/oauth/callback"
    )
    QBO_ENVIRONMENT = os.environ.get("QBO_ENVIRONMENT", "sandbox")  # sandbox | production
    QBO_OAUTH_BASE_URL = os.environ.get(
        "QBO_OAUTH_BASE_URL", "https://oauth.platform.intuit.com"
    )
    QBO_AUTHORIZE_URL = os.environ.get(
        "QBO_AUTHORIZE_URL", "https://appcenter.intuit.com/connect/oauth2"
    )
    QBO_SCOPES = os.environ.get("QBO_SCOPES", "com.intuit.quickbooks.accounting")
    QBO_HTTP_TIMEOUT = float(os.environ.get("QBO_HTTP_TIMEOUT", 20))

    # Intuit refresh tokens live ~100 days from issuance. Only used when the
    # token response omits x_refresh_token_expires_in.
    QBO_REFRESH_TOKEN_LIFETIME_DAYS = int(
        os.environ.get("QBO_REFRESH_TOKEN_LIFETIME_DAYS", 100)
    )
    QBO_REAUTH_WARNING_DAYS = int(os.environ.get("QBO_REAUTH_WARNING_DAYS", 14))
    QBO_STALE_TOKEN_DAYS = int(os.environ.get("QBO_STALE_TOKEN_DAYS", 70))

    # --- Financial snapshots ---
    SNAPSHOT_MAX_AGE_HOURS = int(os.environ.get("SNAPSHOT_MAX_AGE_HOURS", 24))

    # --- LLM (transcript analysis) ---
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
    LLM_MODEL = os.environ.get("LLM_MODEL", "gpt-4o-mini")
    LLM_TEMPERATURE = float(os.environ.get("LLM_TEMPERATURE", 0.3))
    LLM_MAX_TOKENS = int(os.environ.get("LLM_MAX_TOKENS", 4000))
    LLM_TIMEOUT = float(os.environ.get("LLM_TIMEOUT", 60))

    # --- Stripe (hosted subscription checkout) ---
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_PRICE_IDS = [
        p.strip()
        for p in os.environ.get("STRIPE_PRICE_IDS", "").split(",")
        if p.strip()
    ]
    STRIPE_TRIAL_DAYS = int(os.environ.get("STRIPE_TRIAL_DAYS", 14))

    # --- SQLAlchemy ---
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    # --- Session / cookies ---
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SAMESITE = "Lax"

    @staticmethod
    def validate():
        """Fail fast if required env vars are missing."""
        required = [
            "SECRET_KEY",
            "DATABASE_URL",
            "QBO_CLIENT_ID",
            "QBO_CLIENT_SECRET",
            "APP_BASE_URL",
        ]
        missing = [v for v in required if not os.environ.get(v)]
        if missing:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


class DevConfig(Config):
    """Local development."""

    DEBUG = True
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False


class TestConfig(Config):
    """Testing — in-memory SQLite, fake provider credentials."""

    TESTING = True
    DEBUG = True
    SECRET_KEY = "test-secret-key-not-for-production"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    APP_BASE_URL = "http://localhost:3005"
    QBO_CLIENT_ID = "qbo_client_test"
    QBO_CLIENT_SECRET = "qbo_secret_test"
    QBO_REDIRECT_URI = "http://localhost/oauth/callback"
    QBO_ENVIRONMENT = "sandbox"
    QBO_HTTP_TIMEOUT = 5
    OPENAI_API_KEY = "sk-test-fake"
    STRIPE_SECRET_KEY = "sk_test_fake"
    STRIPE_PRICE_IDS = ["price_monthly_test", "price_annual_test"]
    RATELIMIT_ENABLED = False  # disable rate limiting in tests
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    SERVER_NAME = "localhost"

    @staticmethod
    def validate():
        """Skip validation in test mode — everything is hardcoded."""
        pass


class ProdConfig(Config):
    """Production."""

    DEBUG = False
    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True
    QBO_ENVIRONMENT = os.environ.get("QBO_ENVIRONMENT", "production")


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}

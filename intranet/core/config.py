import os
import logging
from pydantic import BaseModel, Field
from typing import List
from dotenv import load_dotenv

load_dotenv()


class HierarchySettings(BaseModel):
    # Reporting-line walks stop after this many hops
    reporting_chain_max_depth: int = int(os.getenv("REPORTING_CHAIN_MAX_DEPTH", "20"))


class CoverageSettings(BaseModel):
    critical_percent: int = int(os.getenv("COVERAGE_CRITICAL_PERCENT", "50"))
    conflict_min_staff: int = int(os.getenv("LEAVE_CONFLICT_MIN_STAFF", "2"))
    max_range_days: int = int(os.getenv("LEAVE_MAX_RANGE_DAYS", "366"))
    upcoming_window_days: int = 7


class Config(BaseModel):
    app_name: str = "Hotel Intranet"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./intranet.db")

    # Auth
    secret_key: str = os.getenv("SECRET_KEY", "dev-only-insecure-key-DO-NOT-USE-IN-PROD")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 12)))
    refresh_token_expire_days: int = 7

    # Domain
    hierarchy: HierarchySettings = HierarchySettings()
    coverage: CoverageSettings = CoverageSettings()

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    version: str = "1.0.0"
    build_id: str = os.getenv("BUILD_ID", "local")
    request_id_header: str = "X-Request-ID"

    # CORS: comma-separated origins loaded from env
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://localhost:5173,"
                "http://127.0.0.1:3000,http://127.0.0.1:5173",
            ).split(",")
            if o.strip()
        ]
    )

    rate_limit_per_minute: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "120"))
    login_rate_limit: str = os.getenv("LOGIN_RATE_LIMIT", "10/minute")
    # Fernet key used to encrypt profile PII at rest
    encryption_key: str = os.getenv("ENCRYPTION_KEY", "ZGV2LW9ubHkta2V5LWRvLW5vdC11c2UtaW4tcHJvZCE=")

    # First-run bootstrap; skipped unless both credentials are set
    bootstrap_org_name: str = os.getenv("BOOTSTRAP_ORG_NAME", "Hotel Group")
    bootstrap_admin_email: str = os.getenv("BOOTSTRAP_ADMIN_EMAIL", "")
    bootstrap_admin_password: str = os.getenv("BOOTSTRAP_ADMIN_PASSWORD", "")

settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
_DEV_ENCRYPTION_KEY = "ZGV2LW9ubHkta2V5LWRvLW5vdC11c2UtaW4tcHJvZCE="
if settings.environment not in ("development", "testing"):
    _critical_missing = []
    if "dev-only" in settings.secret_key:
        _critical_missing.append("SECRET_KEY")
    if settings.encryption_key == _DEV_ENCRYPTION_KEY:
        _critical_missing.append("ENCRYPTION_KEY")
    if _critical_missing:
        raise RuntimeError(
            f"FATAL: The following secrets must be set for non-development environments: "
            f"{', '.join(_critical_missing)}. Set them as environment variables."
        )
else:
    if "dev-only" in settings.secret_key:
        _logger.warning("Using insecure default SECRET_KEY - only acceptable in development.")

import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

READ_FAILURE_POLICIES = ("fail_closed", "fail_open")


class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Persistence collaborator
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Upload quota: what to assume when the consumed count cannot be read
    UPLOAD_COUNT_READ_FAILURE_POLICY: str = "fail_closed"  # fail_closed | fail_open
    QUOTA_WARNING_RATIO: float = 0.8

    # Brain access workflow
    ALLOW_REREQUEST_AFTER_REJECTION: bool = False
    BRAIN_APPROVAL_ESTIMATE: str = "4-6 hours"

    # Audit trail of brain access transitions
    AUDIT_ENABLED: bool = True

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate policy configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only offending keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("braincore")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    if cfg.UPLOAD_COUNT_READ_FAILURE_POLICY not in READ_FAILURE_POLICIES:
        problems.append("UPLOAD_COUNT_READ_FAILURE_POLICY")
    if not 0 < cfg.QUOTA_WARNING_RATIO <= 1:
        problems.append("QUOTA_WARNING_RATIO")
    if cfg.ENV.lower() != "test" and not (cfg.DATABASE_URL or cfg.TEST_DATABASE_URL):
        problems.append("DATABASE_URL")

    if problems:
        message = f"Invalid or missing configuration: {', '.join(problems)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)
        return False

    return True

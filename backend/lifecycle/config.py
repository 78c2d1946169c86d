import logging
import logging.handlers
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql://lifecycle:lifecycle@db:5432/lifecycle"
    secret_key: str = "change-me"

    # Operator accounts (notification recipients, never lifecycle subjects)
    admin_email: str = ""
    admin_password: str = ""
    operator_emails: str = ""

    # HTTP
    cors_origins: str = "*"
    cors_allow_credentials: bool = True
    trusted_hosts: str = "*"
    rate_limit_login: str = "10/minute"
    rate_limit_run_check: str = "5/minute"

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_max_bytes: int = 10_485_760  # 10 MB
    log_backup_count: int = 5

    # Outbound e-mail
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from_name: str = "Account Lifecycle"
    smtp_timeout: int = 15
    frontend_url: str = "http://localhost:3000"
    support_email: str = "support@example.com"

    # Inactivity engine
    inactivity_scheduler_enabled: bool = True
    inactivity_schedule_hour: int = 2
    inactivity_batch_size: int = 200

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def effective_database_url(self) -> str:
        """Normalize legacy postgres:// URLs (Heroku/Render style) for SQLAlchemy."""
        if self.database_url.startswith("postgres://"):
            return "postgresql://" + self.database_url[len("postgres://") :]
        return self.database_url

    @property
    def cors_origins_list(self) -> list[str]:
        return _split_csv(self.cors_origins) or ["*"]

    @property
    def trusted_hosts_list(self) -> list[str]:
        return _split_csv(self.trusted_hosts) or ["*"]

    @property
    def operator_emails_list(self) -> list[str]:
        emails = [e.lower() for e in _split_csv(self.operator_emails)]
        if self.admin_email and self.admin_email.lower() not in emails:
            emails.append(self.admin_email.lower())
        return emails


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


settings = Settings()


def setup_logging() -> None:
    """Configure application-wide logging with rotating file handlers.

    Creates three handlers:
    - Console: INFO+ with brief format (for docker compose logs)
    - app.log: DEBUG+ with detailed format, rotated at 10 MB x 5 backups
    - error.log: ERROR+ only, rotated at 10 MB x 5 backups
    """
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    # --- Console handler (brief, for Docker logs / stdout) ---
    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root.addHandler(console)

    detail_fmt = logging.Formatter(
        "%(asctime)s %(levelname)-8s [%(name)s:%(funcName)s:%(lineno)d] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    app_handler = logging.handlers.RotatingFileHandler(
        log_dir / "app.log",
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    app_handler.setLevel(logging.DEBUG)
    app_handler.setFormatter(detail_fmt)
    root.addHandler(app_handler)

    # Lifecycle actions (deactivation, deletion) must survive in error.log when they fail
    err_handler = logging.handlers.RotatingFileHandler(
        log_dir / "error.log",
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    err_handler.setLevel(logging.ERROR)
    err_handler.setFormatter(detail_fmt)
    root.addHandler(err_handler)

    # --- Quiet noisy third-party loggers ---
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, dir=%s, max=%s MB x %d backups",
        settings.log_level,
        log_dir,
        settings.log_max_bytes // 1_048_576,
        settings.log_backup_count,
    )

"""Process-wide logging setup."""
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the package logger."""
    package_logger = logging.getLogger("crm_auth")
    package_logger.setLevel(level.upper())
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)


def redact_email(email: str) -> str:
    """Redact an email address for logging."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"

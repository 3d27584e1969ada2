"""Configuration loading and validation."""

import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

SECURITY_MODES = ("ssl", "starttls", "starttls_if_supported", "none")


@dataclass
class AccountConfig:
    """Single IMAP account connection settings."""

    name: str
    host: str
    port: int
    username: str
    password: str
    security: str = "ssl"
    allow_unauthorized_certs: bool = False


@dataclass
class AppConfig:
    """Application configuration."""

    output_dir: str
    accounts: dict[str, AccountConfig] = field(default_factory=dict)
    debug_imap_logs: bool = False


def load_config(config_path):
    """Load and validate configuration from a JSON file.

    Exits the process if the config file is missing or invalid.
    """
    path = Path(config_path).resolve()
    if not path.exists():
        logger.error("Config file not found: %s", config_path)
        sys.exit(1)

    config_dir = path.parent

    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as exc:
        logger.error("Invalid JSON in %s: %s", config_path, exc)
        sys.exit(1)

    accounts = {}
    required_fields = ("host", "port", "username", "password")
    for name, acc_raw in raw.get("accounts", {}).items():
        for key in required_fields:
            if key not in acc_raw:
                logger.error("Account '%s' missing required field: %s", name, key)
                sys.exit(1)
        security = acc_raw.get("security", "ssl").lower()
        if security not in SECURITY_MODES:
            logger.error(
                "Account '%s' has invalid security '%s' (expected one of: %s)",
                name,
                security,
                ", ".join(SECURITY_MODES),
            )
            sys.exit(1)
        accounts[name] = AccountConfig(
            name=name,
            host=acc_raw["host"],
            port=int(acc_raw["port"]),
            username=acc_raw["username"],
            password=acc_raw["password"],
            security=security,
            allow_unauthorized_certs=bool(acc_raw.get("allow_unauthorized_certs", False)),
        )

    if not accounts:
        logger.error("No accounts configured")
        sys.exit(1)

    output_dir = config_dir / raw.get("output_dir", "output")

    return AppConfig(
        output_dir=str(output_dir),
        accounts=accounts,
        debug_imap_logs=bool(raw.get("debug_imap_logs", False)),
    )

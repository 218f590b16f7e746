"""
Configuration module for meeting protocol generation.

Centralizes all settings and environment variables for easy configuration.

Usage:
    from config import config

    print(config.meeting_api_base_url)
    print(config.max_workers)
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Config:
    """
    Application configuration loaded from environment variables.

    All settings can be overridden via environment variables.
    """

    # Backend API
    meeting_api_base_url: str = "http://127.0.0.1:8787"
    meeting_api_token: Optional[str] = None
    api_timeout: int = 30  # seconds

    # Web UI Settings
    web_ui_host: str = "127.0.0.1"
    web_ui_port: int = 7860

    # Image generation
    max_workers: int = 4
    org_qr_size: int = 150  # pixels
    voter_qr_size: int = 80  # pixels

    # Hours east of UTC used to render timezone-aware timestamps (Tashkent)
    display_utc_offset: float = 5.0

    # Management company shown in the closing attribution block
    org_name: str = "OOO KAMIZO"
    org_address: str = "г. Ташкент, Яшнобадский район, ул. Махтумкули, дом 93/3"
    org_bank: str = "«Ориент Финанс» ЧАКБ Миробад филиал"
    org_account: str = "20208000805307918001"
    org_inn: str = "307928888"
    org_oked: str = "81100"
    org_mfo: str = "01071"

    # Logging Settings
    log_level: str = "INFO"

    def __post_init__(self):
        """Load configuration from environment variables."""
        # Backend API
        self.meeting_api_base_url = os.environ.get("MEETING_API_BASE_URL", self.meeting_api_base_url)
        self.meeting_api_token = os.environ.get("MEETING_API_TOKEN")
        self.api_timeout = int(os.environ.get("API_TIMEOUT", str(self.api_timeout)))

        # Web UI
        self.web_ui_host = os.environ.get("WEB_UI_HOST", self.web_ui_host)
        self.web_ui_port = int(os.environ.get("WEB_UI_PORT", str(self.web_ui_port)))

        # Image generation
        self.max_workers = int(os.environ.get("MAX_WORKERS", str(self.max_workers)))
        self.org_qr_size = int(os.environ.get("ORG_QR_SIZE", str(self.org_qr_size)))
        self.voter_qr_size = int(os.environ.get("VOTER_QR_SIZE", str(self.voter_qr_size)))
        self.display_utc_offset = float(os.environ.get("DISPLAY_UTC_OFFSET", str(self.display_utc_offset)))

        # Organization
        self.org_name = os.environ.get("ORG_NAME", self.org_name)
        self.org_address = os.environ.get("ORG_ADDRESS", self.org_address)
        self.org_bank = os.environ.get("ORG_BANK", self.org_bank)
        self.org_account = os.environ.get("ORG_ACCOUNT", self.org_account)
        self.org_inn = os.environ.get("ORG_INN", self.org_inn)
        self.org_oked = os.environ.get("ORG_OKED", self.org_oked)
        self.org_mfo = os.environ.get("ORG_MFO", self.org_mfo)

        # Logging
        self.log_level = os.environ.get("LOG_LEVEL", self.log_level)

    @property
    def has_api_token(self) -> bool:
        """Check if a backend API token is configured."""
        return bool(self.meeting_api_token)

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of issues.

        Returns:
            List of configuration issues (empty if valid)
        """
        issues = []

        if not self.meeting_api_base_url.startswith(("http://", "https://")):
            issues.append(f"MEETING_API_BASE_URL must be an http(s) URL, got {self.meeting_api_base_url}")

        if self.max_workers < 1:
            issues.append(f"MAX_WORKERS must be at least 1, got {self.max_workers}")

        if self.api_timeout < 1:
            issues.append(f"API_TIMEOUT must be positive, got {self.api_timeout}")

        if self.org_qr_size < 21 or self.voter_qr_size < 21:
            issues.append("QR sizes must be at least 21 pixels (one pixel per module)")

        if not -12 <= self.display_utc_offset <= 14:
            issues.append(f"DISPLAY_UTC_OFFSET out of range, got {self.display_utc_offset}")

        return issues

    def to_dict(self) -> dict:
        """Convert configuration to dictionary (safe for logging)."""
        return {
            "meeting_api_base_url": self.meeting_api_base_url,
            "api_timeout": self.api_timeout,
            "web_ui_host": self.web_ui_host,
            "web_ui_port": self.web_ui_port,
            "max_workers": self.max_workers,
            "org_qr_size": self.org_qr_size,
            "voter_qr_size": self.voter_qr_size,
            "display_utc_offset": self.display_utc_offset,
            "org_name": self.org_name,
            "log_level": self.log_level,
            "has_api_token": self.has_api_token,
            # Note: the API token is NOT included for security
        }


# Global configuration instance
config = Config()


def get_config() -> Config:
    """Get the global configuration instance."""
    return config


def reload_config() -> Config:
    """Reload configuration from environment variables."""
    global config
    config = Config()
    return config

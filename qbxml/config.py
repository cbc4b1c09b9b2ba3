# qbxml/config.py
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _opt_int(raw: Optional[str]) -> Optional[int]:
    return int(raw) if raw not in (None, "") else None


def _opt_float(raw: Optional[str]) -> Optional[float]:
    return float(raw) if raw not in (None, "") else None


@dataclass
class AppConfig:
    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Quickbase credentials (all optional, overridable per call)
    QB_USERNAME: Optional[str] = os.getenv("QB_USERNAME")
    QB_PASSWORD: Optional[str] = os.getenv("QB_PASSWORD")
    QB_REALM: Optional[str] = os.getenv("QB_REALM")
    QB_APPTOKEN: Optional[str] = os.getenv("QB_APPTOKEN")
    QB_HOURS: Optional[int] = _opt_int(os.getenv("QB_HOURS"))
    QB_TICKET: Optional[str] = os.getenv("QB_TICKET")

    # Transport
    QB_DOMAIN: str = os.getenv("QB_DOMAIN", "quickbase.com")
    QB_TIMEOUT: Optional[float] = _opt_float(os.getenv("QB_TIMEOUT"))  # None -> requests default
    QB_DEBUG: bool = os.getenv("QB_DEBUG", "false").lower() == "true"

"""QuickBase XML API client."""
from __future__ import annotations

__version__ = "0.1.0"

from .schemas.models import MAIN, ParamEntry
from .services.errors import ErrorCategory, QuickbaseError
from .services.quickbase_client import QuickbaseClient
from .services.xml_codec import parse_records

__all__ = [
    "MAIN",
    "ParamEntry",
    "ErrorCategory",
    "QuickbaseError",
    "QuickbaseClient",
    "parse_records",
]

from .errors import ErrorCategory, QuickbaseError
from .quickbase_client import QuickbaseClient
from .xml_codec import build_request, parse_records, parse_response

__all__ = [
    "ErrorCategory",
    "QuickbaseError",
    "QuickbaseClient",
    "build_request",
    "parse_records",
    "parse_response",
]

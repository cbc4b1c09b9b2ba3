# qbxml/services/errors.py
from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    TRANSPORT = "Transport"
    HTTP = "HTTP"
    SERIALIZATION = "XML"
    SERVICE = "QuickBase API"


class QuickbaseError(Exception):
    """
    A failed QuickBase call.

    - category: where the call failed (see ErrorCategory).
    - code: QuickBase errcode for SERVICE errors, HTTP status for HTTP errors,
      errno of the underlying socket error (or -1) otherwise.
    - response: raw response body when one was received.

    For the QuickBase error code list, see:
    http://www.quickbase.com/api-guide/errorcodes.html
    """

    def __init__(
        self,
        category: ErrorCategory,
        code: Optional[int],
        message: str,
        url: Optional[str] = None,
        response: Optional[bytes] = None,
    ) -> None:
        super().__init__(category, code, message)
        self.category = category
        self.code = code
        self.message = message
        self.url = url
        self.response = response

    def __str__(self) -> str:
        return format_err_msg(self.category, self.code, self.message, self.url)


def format_err_msg(
    category: ErrorCategory, code: Optional[int], message: str, url: Optional[str] = None
) -> str:
    """'<category>: [<code>] <message> [<url>]' with the code/url parts dropped when unset."""
    parts = [f"{ErrorCategory(category).value}:"]
    if code is not None:
        parts.append(f"[{code}]")
    parts.append(message)
    if url:
        parts.append(f"[{url}]")
    return " ".join(parts)

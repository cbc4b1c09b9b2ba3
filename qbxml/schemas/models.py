"""
Session state and request parameter types for the QuickBase XML API
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional

# Target for account-level actions (API_Authenticate, API_GrantedDBs, ...)
MAIN = "main"


@dataclass
class ParamEntry:
    """One structured request element: text datum plus XML attributes.

    ParamEntry("Acme", {"fid": "6"}) serializes to <field fid="6">Acme</field>
    when listed under the "field" key.
    """
    value: Any
    attrs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Session:
    realm: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    apptoken: Optional[str] = None
    hours: Optional[int] = None

    # Set on successful API_Authenticate
    ticket: Optional[str] = None
    userid: Optional[str] = None

    @property
    def authenticated(self) -> bool:
        return bool(self.ticket)

    def merge(self, **overrides) -> None:
        """Copy non-empty overrides onto the session."""
        for key, value in overrides.items():
            if key not in ("realm", "username", "password", "apptoken", "hours"):
                raise TypeError(f"Unknown session option: {key}")
            if value not in (None, ""):
                setattr(self, key, value)

    def clear(self) -> None:
        self.ticket = None
        self.userid = None

from .actions import ActionMapping, QuickBaseActions
from .models import MAIN, ParamEntry, Session

__all__ = ["ActionMapping", "QuickBaseActions", "MAIN", "ParamEntry", "Session"]

import re
from typing import Any, Dict, Iterable, Optional, Union

from .schemas.models import ParamEntry

# Matches field ids / saved query ids given as strings: "6", " 42 ", "42.0"
_NUMERIC_RX = re.compile(r"^\s*\d+(\.0*)?\s*$")


def is_numeric(value: Any) -> bool:
    """
    True for values that name an integer id: ints, integral floats (6.0) and
    strings such as "6" or "42.0". Fractional values (6.5) and bool are not
    numeric, since QuickBase field and query ids are whole numbers.
    """
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return value.is_integer()
    return isinstance(value, str) and bool(_NUMERIC_RX.match(value))


def to_id(value: Any) -> int:
    """Numeric id value -> int ("42.0" -> 42)."""
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return int(value.strip().split(".")[0])


def flag(value: Any) -> Optional[int]:
    """Boolean option -> 1 when truthy, None (omitted) otherwise. Never 0."""
    return 1 if value else None


def join_list(items: Optional[Iterable[Any]], sep: str = ".") -> Optional[str]:
    """[3, 6, 7] -> "3.6.7"; empty or None -> None so the key is omitted."""
    if items is None:
        return None
    if isinstance(items, str):
        return items or None
    joined = sep.join(str(i) for i in items)
    return joined or None


def query_param(query: Any) -> Dict[str, Any]:
    """
    Polymorphic query argument -> exactly one of qid / query / qname.
      42 or "42"        -> {"qid": 42}
      ["{3.EX.5}"]      -> {"query": ["{3.EX.5}"]}
      "My Open Items"   -> {"qname": "My Open Items"}
    Empty values produce {}.
    """
    if query is None or query == "" or query == [] or isinstance(query, bool):
        return {}
    if is_numeric(query):
        return {"qid": to_id(query)}
    if isinstance(query, (list, tuple)):
        return {"query": list(query)}
    return {"qname": query}


def field_entries(fields: Optional[Dict[Union[int, str], Any]]) -> list:
    """
    {6: "Acme", "Status": "Open"} -> [<field fid="6">, <field name="Status">] entries.
    Scalars are wrapped in a ParamEntry; ParamEntry values keep their attributes and
    get the identifying fid/name attribute injected.
    """
    entries = []
    for key, value in (fields or {}).items():
        ident = {"fid": to_id(key)} if is_numeric(key) else {"name": key}
        if isinstance(value, ParamEntry):
            attrs = dict(value.attrs)
            attrs.update(ident)
            entry = ParamEntry(value.value, attrs)
        else:
            entry = ParamEntry(value, dict(ident))
        entries.append(entry)
    return entries

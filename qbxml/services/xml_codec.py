# qbxml/services/xml_codec.py
"""
<qdbapi> request envelope builder and response parser.

Request values can be:
- a scalar -> <key>value</key>
- a list of scalars -> one <key> element per item
- a ParamEntry or a list of them -> <key attr="..">value</key> per entry
None, "", False and empty lists are skipped unless the key is always-send.
"""
import logging
import pprint
import re
from typing import Any, Dict, Iterable, List, Optional
from xml.etree import ElementTree

from ..schemas.models import ParamEntry
from .errors import ErrorCategory, QuickbaseError

logger = logging.getLogger(__name__)

ROOT_TAG = "qdbapi"

_TAG_RX = re.compile(r"^[A-Za-z_][\w.\-]*$")
_DECL_RX = re.compile(r"^\s*<\?xml[^>]*\?>")


def is_empty(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, (str, bytes, list, tuple)) and len(value) == 0:
        return True
    return False


def _text(value: Any) -> str:
    if value is None:
        return ""
    if value is True:
        return "1"
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _add(root: ElementTree.Element, tag: str, value: Any) -> None:
    if not _TAG_RX.match(tag):
        raise ValueError(f"invalid element name {tag!r}")
    if isinstance(value, ParamEntry):
        attrib = {}
        for name, attr_value in value.attrs.items():
            if not _TAG_RX.match(str(name)):
                raise ValueError(f"invalid attribute name {name!r} on <{tag}>")
            attrib[str(name)] = _text(attr_value)
        el = ElementTree.SubElement(root, tag, attrib)
    else:
        el = ElementTree.SubElement(root, tag)
    el.text = _text(value.value if isinstance(value, ParamEntry) else value)


def build_request(params: Dict[str, Any], always_send: Iterable[str] = ()) -> bytes:
    """
    Serialize params into a UTF-8 <qdbapi> document.
    Raises QuickbaseError(SERIALIZATION) when no well-formed XML can be produced.
    """
    always_send = set(always_send)
    root = ElementTree.Element(ROOT_TAG)
    try:
        for key, value in params.items():
            if is_empty(value):
                if key in always_send:
                    _add(root, key, "")
                continue
            values = value if isinstance(value, (list, tuple)) else [value]
            for item in values:
                if item is None:
                    continue
                _add(root, key, item)
        xml = ElementTree.tostring(root, encoding="utf-8")
        # ElementTree does not reject control characters; re-parse to be sure.
        ElementTree.fromstring(xml)
    except (ValueError, TypeError, ElementTree.ParseError) as e:
        raise QuickbaseError(
            ErrorCategory.SERIALIZATION,
            -1,
            f"Unable to construct XML from provided parameters ({e}): {pprint.pformat(params)}",
        ) from e
    return xml


def decode_body(body: bytes) -> str:
    """Raw (non-XML) response body as text: UTF-8, or cp1252 when that fails."""
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        # QuickBase sometimes answers in cp1252 even when asked for utf-8
        logger.debug("Response is not valid UTF-8, decoding as cp1252")
        return body.decode("cp1252", errors="replace")


def _is_utf8(body: bytes) -> bool:
    try:
        body.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True


def _parse(body: bytes) -> ElementTree.Element:
    try:
        return ElementTree.fromstring(body)
    except ElementTree.ParseError:
        if _is_utf8(body):
            raise
    # cp1252 bytes under a UTF-8 or missing declaration: transcode, drop the declaration
    logger.debug("Response is not valid UTF-8, re-encoding from cp1252")
    text = _DECL_RX.sub("", body.decode("cp1252", errors="replace"), count=1)
    return ElementTree.fromstring(text.encode("utf-8"))


def parse_response(body: bytes, url: Optional[str] = None) -> ElementTree.Element:
    """
    Parse a QuickBase XML response and check its errcode.
    Raises QuickbaseError (SERIALIZATION for unparsable XML, SERVICE for errcode != 0).
    """
    try:
        parsed = _parse(body)
    except ElementTree.ParseError as e:
        raise QuickbaseError(
            ErrorCategory.SERIALIZATION,
            e.code,
            f"{e}; response body: {body[:2000]!r}",
            url=url,
            response=body,
        ) from e

    errcode = parsed.findtext("errcode")
    if errcode is None or errcode.strip() == "":
        return parsed
    try:
        code = int(errcode)
    except ValueError:
        raise QuickbaseError(
            ErrorCategory.SERIALIZATION, -1, f'"errcode" not an integer: {errcode!r}',
            url=url, response=body,
        ) from None

    if code != 0:
        message = parsed.findtext("errtext") or "[no error text]"
        detail = parsed.findtext("errdetail")
        if detail:
            message = f"{message} ({detail})"
        raise QuickbaseError(ErrorCategory.SERVICE, code, message, url=url, response=body)
    return parsed


def parse_records(response: ElementTree.Element) -> List[Dict[str, Optional[str]]]:
    """
    Flatten <record> elements (DoQuery) into dicts keyed by field tag.
    The record id attribute, when present, is kept as "record_id".
    """
    records = []
    for record_el in response.iter("record"):
        record: Dict[str, Optional[str]] = {}
        rid = record_el.get("rid")
        if rid is not None:
            record["record_id"] = rid
        for field_el in record_el:
            if field_el.tag == "f":  # fmt=structured: <f id="6">..</f>
                record[field_el.get("id")] = field_el.text
            elif field_el.tag != "update_id":
                record[field_el.tag] = field_el.text
        records.append(record)
    return records

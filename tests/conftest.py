import pytest
from xml.etree import ElementTree

from qbxml.services.quickbase_client import QuickbaseClient

AUTH_OK = (
    b"<?xml version='1.0' ?><qdbapi><action>api_authenticate</action>"
    b"<errcode>0</errcode><errtext>No error</errtext>"
    b"<ticket>tkt-123</ticket><userid>112149.bhsv</userid></qdbapi>"
)


def qdbapi(body: str = "", errcode: int = 0, errtext: str = "No error") -> bytes:
    return (
        f"<?xml version='1.0' ?><qdbapi><errcode>{errcode}</errcode>"
        f"<errtext>{errtext}</errtext>{body}</qdbapi>"
    ).encode("utf-8")


class FakeResponse:
    def __init__(self, content: bytes = b"", status_code: int = 200):
        self.content = content
        self.status_code = status_code

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")


class FakeHttp:
    """Stands in for requests.Session: records posts, replays queued responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    def post(self, url, data=None, headers=None, timeout=None):
        self.calls.append({"url": url, "data": data, "headers": headers, "timeout": timeout})
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        if isinstance(resp, bytes):
            return FakeResponse(resp)
        return resp

    def body(self, index: int = -1) -> ElementTree.Element:
        return ElementTree.fromstring(self.calls[index]["data"])


@pytest.fixture
def http():
    return FakeHttp()


@pytest.fixture
def client(http):
    return QuickbaseClient(username="jdoe", password="secret", realm="acme", http=http)


@pytest.fixture
def authed(http):
    """Client holding a ticket already: no API_Authenticate round trip."""
    return QuickbaseClient(realm="acme", ticket="tkt-123", http=http)

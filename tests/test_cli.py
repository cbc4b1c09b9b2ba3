import json

import pytest
from click.testing import CliRunner

from qbxml import cli
from qbxml.config import AppConfig
from qbxml.services.quickbase_client import QuickbaseClient

from conftest import AUTH_OK, FakeHttp, qdbapi


@pytest.fixture
def fake_http(monkeypatch):
    http = FakeHttp()
    real_from_config = QuickbaseClient.from_config.__func__

    def from_config(cls, cfg, **kwargs):
        return real_from_config(cls, cfg, http=http, **kwargs)

    monkeypatch.setattr(cli, "AppConfig", lambda: AppConfig(LOG_LEVEL="WARNING", QB_TICKET=None))
    monkeypatch.setattr(cli.QuickbaseClient, "from_config", classmethod(from_config))
    return http


def _run(*args):
    return CliRunner().invoke(cli.main, ["--realm", "acme", "-u", "jdoe", "-p", "pw", *args])


def test_auth_prints_ticket(fake_http):
    fake_http.queue(AUTH_OK)
    result = _run("auth")
    assert result.exit_code == 0
    assert json.loads(result.output) == {"ticket": "tkt-123", "userid": "112149.bhsv"}
    assert fake_http.calls[0]["url"] == "https://acme.quickbase.com/db/main"


def test_query_prints_records(fake_http):
    fake_http.queue(AUTH_OK, qdbapi("<record rid='7'><name>Acme</name></record>"))
    result = _run("query", "bx7y8z9", "-q", "{3.EX.7}", "-c", "3", "-c", "6")
    assert result.exit_code == 0
    assert json.loads(result.output) == [{"record_id": "7", "name": "Acme"}]
    body = fake_http.body()
    assert body.findtext("query") == "{3.EX.7}"
    assert body.findtext("clist") == "3.6"
    assert body.findtext("includeRids") == "1"


def test_count_with_saved_query_id(fake_http):
    fake_http.queue(AUTH_OK, qdbapi("<numMatches>12</numMatches>"))
    result = _run("count", "bx7y8z9", "--qid", "5")
    assert result.exit_code == 0
    assert result.output.strip() == "12"
    assert fake_http.body().findtext("qid") == "5"


def test_failure_prints_errmsg_and_exits_1(fake_http):
    fake_http.queue(qdbapi(errcode=20, errtext="Unknown username/password"))
    result = _run("num-records", "bx7y8z9")
    assert result.exit_code == 1
    assert "QuickBase API: [20] Unknown username/password" in result.output

import pytest

from qbxml.schemas.actions import QuickBaseActions
from qbxml.services.quickbase_client import QuickbaseClient


def test_action_header_name():
    assert QuickBaseActions.get("DoQuery").action == "API_DoQuery"


def test_unknown_action():
    with pytest.raises(KeyError):
        QuickBaseActions.get("DoMagic")


def test_raw_actions():
    raw = sorted(m.name for m in QuickBaseActions.ACTIONS if not m.expect_xml)
    assert raw == ["GenAddRecordForm", "GenResultsTable", "GetDBPage", "GetRecordAsHTML"]


def test_account_level_actions():
    main = sorted(m.name for m in QuickBaseActions.ACTIONS if m.account_level)
    assert main == [
        "Authenticate", "CreateDatabase", "FindDBByName", "GetAppDTMInfo",
        "GetUserInfo", "GrantedDBs", "SignOut",
    ]


def test_every_action_has_a_client_method():
    names = {m.name for m in QuickBaseActions.ACTIONS}
    assert len(names) == len(QuickBaseActions.ACTIONS)
    methods = {
        "GetDBvar": "get_db_var", "SetDBvar": "set_db_var", "GetAppDTMInfo": "get_app_dtm_info",
        "GetDBInfo": "get_db_info", "GetDBPage": "get_db_page", "FindDBByName": "find_db_by_name",
        "GrantedDBs": "granted_dbs", "AddReplaceDBPage": "add_replace_db_page",
        "GetRecordAsHTML": "get_record_as_html", "ImportFromCSV": "import_from_csv",
    }
    for name in names:
        default = "".join("_" + c.lower() if c.isupper() else c for c in name).lstrip("_")
        assert callable(getattr(QuickbaseClient, methods.get(name, default)))

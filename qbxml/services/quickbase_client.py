# qbxml/services/quickbase_client.py
import base64
import logging
from typing import Any, Callable, Dict, Iterable, Optional, Tuple, Union
from xml.etree import ElementTree

import requests

from ..schemas.actions import QuickBaseActions
from ..schemas.models import MAIN, ParamEntry, Session
from ..utils import field_entries, flag, join_list, query_param
from .errors import ErrorCategory, QuickbaseError
from .xml_codec import build_request, decode_body, is_empty, parse_response

logger = logging.getLogger(__name__)

Result = Union[ElementTree.Element, str, None]
FieldMap = Dict[Union[int, str], Any]


def _transport_errno(error: BaseException) -> int:
    """Dig the socket errno out of a requests exception chain, -1 if there is none."""
    seen = set()
    cause: Optional[BaseException] = error
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        if isinstance(cause, OSError) and isinstance(cause.errno, int):
            return cause.errno
        reason = getattr(cause, "reason", None)
        if isinstance(reason, BaseException):
            cause = reason
        elif cause.args and isinstance(cause.args[0], BaseException):
            cause = cause.args[0]
        else:
            cause = cause.__cause__ or cause.__context__
    return -1


def _raw_text(resp) -> str:
    """Body of a non-XML response, decoded with the charset the server named, if any."""
    content_type = getattr(resp, "headers", {}).get("Content-Type", "")
    if "charset=" in content_type.lower() and resp.encoding:
        try:
            return resp.content.decode(resp.encoding, errors="replace")
        except LookupError:
            logger.debug(f"Unknown response charset {resp.encoding!r}")
    return decode_body(resp.content)

class QuickbaseClient:
    """
    Client for the QuickBase XML HTTP API.

    - One method per API_* action; each authenticates first and returns the parsed
      <qdbapi> response (xml.etree Element), the raw body for HTML actions, or None
      on failure.
    - Failure details stay on the client: errno, errmsg, last_error.
    - The ticket returned by API_Authenticate is cached and sent with every call
      until sign_out().

    API guide: http://www.quickbase.com/api-guide/index.html
    """

    DEFAULT_REALM = "www"
    DEFAULT_DOMAIN = "quickbase.com"

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        realm: Optional[str] = None,
        apptoken: Optional[str] = None,
        hours: Optional[int] = None,
        ticket: Optional[str] = None,
        *,
        domain: Optional[str] = None,
        timeout: Optional[float] = None,
        debug: bool = False,
        debug_hook: Optional[Callable[[str, str, Dict[str, Any], bytes], None]] = None,
        http: Optional[object] = None,
    ) -> None:
        self.session = Session(
            realm=realm or None,
            username=username or None,
            password=password or None,
            apptoken=apptoken or None,
            hours=hours or None,
            ticket=ticket or None,
        )
        self.domain = domain or self.DEFAULT_DOMAIN
        self.timeout = timeout
        self.debug = bool(debug or debug_hook)
        self.debug_hook = debug_hook

        # Caller-owned requests.Session (or compatible); None -> one per call
        self.http = http

        self.errno: int = 0
        self.errmsg: str = ""
        self.last_error: Optional[QuickbaseError] = None
        self.last_request: Optional[Dict[str, Any]] = None

    @classmethod
    def from_config(cls, cfg, **kwargs) -> "QuickbaseClient":
        return cls(
            username=cfg.QB_USERNAME,
            password=cfg.QB_PASSWORD,
            realm=cfg.QB_REALM,
            apptoken=cfg.QB_APPTOKEN,
            hours=cfg.QB_HOURS,
            ticket=cfg.QB_TICKET,
            domain=cfg.QB_DOMAIN,
            timeout=cfg.QB_TIMEOUT,
            debug=cfg.QB_DEBUG,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    @property
    def ticket(self) -> Optional[str]:
        return self.session.ticket

    @property
    def userid(self) -> Optional[str]:
        return self.session.userid

    def authenticate(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        realm: Optional[str] = None,
        apptoken: Optional[str] = None,
        hours: Optional[int] = None,
    ) -> bool:
        """
        API_Authenticate. No-op when a ticket is already cached.
        Non-empty arguments replace the values given at construction.
        Returns True iff a ticket is held afterwards.
        """
        if self.session.authenticated:
            return True

        self.session.merge(
            username=username, password=password, realm=realm, apptoken=apptoken, hours=hours
        )
        params = {
            "username": self.session.username,
            "password": self.session.password,
            "hours": self.session.hours,
        }
        resp = self.dispatch(QuickBaseActions.get("Authenticate").action, params, MAIN)
        if resp is not None:
            ticket = resp.findtext("ticket")
            if ticket:
                self.session.ticket = ticket
                self.session.userid = resp.findtext("userid")
                logger.info(f"Authenticated {self.session.username} on realm {self.realm}")
            else:
                self._fail(QuickbaseError(
                    ErrorCategory.SERIALIZATION, -1, '"ticket" not in response', url=self.url_for(MAIN)
                ))
        return self.session.authenticated

    def sign_out(self) -> Result:
        """API_SignOut, then drop the cached ticket whatever the service answered."""
        resp = self._call("SignOut")
        self.session.clear()
        return resp

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    @property
    def realm(self) -> str:
        return self.session.realm or self.DEFAULT_REALM

    def url_for(self, target: Optional[str] = None) -> str:
        path = f"db/{target}" if target else ""
        return f"https://{self.realm}.{self.domain}/{path}"

    def dispatch(
        self,
        action: str,
        params: Dict[str, Any],
        target: Optional[str] = None,
        expect_xml: bool = True,
        always_send: Iterable[str] = (),
    ) -> Result:
        """
        Serialize params, POST them to the target and parse the answer.

        Returns the parsed response, the raw body text when expect_xml is False,
        or None after recording the failure on errno/errmsg/last_error.
        """
        params = dict(params)
        # Caller-supplied ticket/apptoken win over the session's
        if self.session.ticket and is_empty(params.get("ticket")):
            params["ticket"] = self.session.ticket
        if self.session.apptoken and is_empty(params.get("apptoken")):
            params["apptoken"] = self.session.apptoken

        url = self.url_for(target)
        try:
            try:
                xml = build_request(params, always_send)
            except QuickbaseError as e:
                e.url = url
                raise
            self._trace(action, url, params, xml)

            resp = self._post(action, url, xml)
            if not expect_xml:
                return _raw_text(resp)
            return parse_response(resp.content, url=url)
        except QuickbaseError as e:
            self._fail(e)
            return None

    def _post(self, action: str, url: str, xml: bytes) -> requests.Response:
        headers = {
            "Content-Type": "application/xml",
            "Content-Length": str(len(xml)),
            "QUICKBASE-ACTION": action,
        }
        try:
            if self.http is not None:
                resp = self.http.post(url, data=xml, headers=headers, timeout=self.timeout)
            else:
                with requests.Session() as http:
                    resp = http.post(url, data=xml, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise QuickbaseError(
                ErrorCategory.TRANSPORT, _transport_errno(e), str(e), url=url
            ) from e

        logger.debug(f"{action} -> HTTP {resp.status_code} ({len(resp.content)} bytes)")
        if resp.status_code // 100 != 2:
            raise QuickbaseError(
                ErrorCategory.HTTP,
                resp.status_code,
                "Received non-2xx response code",
                url=url,
                response=resp.content,
            )
        return resp

    def _trace(self, action: str, url: str, params: Dict[str, Any], xml: bytes) -> None:
        if not self.debug:
            return
        self.last_request = {"action": action, "url": url, "params": params, "xml": xml}
        logger.debug(f"{action} {url} params={params!r}")
        logger.debug(f"{action} request body: {xml.decode('utf-8')}")
        if self.debug_hook is not None:
            self.debug_hook(action, url, params, xml)

    def _fail(self, error: QuickbaseError) -> None:
        self.last_error = error
        self.errno = error.code if error.code is not None else -1
        self.errmsg = str(error)
        logger.warning(self.errmsg)

    def _call(
        self,
        name: str,
        dbid: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        one_of: Tuple[str, ...] = (),
    ) -> Result:
        """
        Authenticate, then dispatch the catalogued action with its target and format.
        one_of: params of which at least one must be set (e.g. rid or key).
        Missing arguments are recorded like any other failed call.
        """
        mapping = QuickBaseActions.get(name)
        params = params or {}
        target = MAIN if mapping.account_level else dbid
        if is_empty(target):
            return self._reject(mapping.action, "a dbid is required")
        if one_of and all(is_empty(params.get(k)) for k in one_of):
            return self._reject(mapping.action, f"one of {', '.join(one_of)} is required")

        if not self.authenticate():
            return None
        return self.dispatch(
            mapping.action,
            params,
            target,
            expect_xml=mapping.expect_xml,
            always_send=mapping.always_send,
        )

    @staticmethod
    def _options(
        num: Optional[int] = None,
        skip: Optional[int] = None,
        only_new: bool = False,
        ascending: bool = True,
        extra: Optional[Iterable[str]] = None,
    ) -> Optional[str]:
        options = []
        if num is not None:
            options.append(f"num-{int(num)}")
        if only_new:
            options.append("onlynew")
        if skip is not None:
            options.append(f"skp-{int(skip)}")
        if not ascending:
            options.append("sortorder-D")
        options.extend(extra or [])
        return join_list(options)

    def _reject(self, action: str, message: str) -> None:
        self._fail(QuickbaseError(ErrorCategory.SERIALIZATION, -1, f"{action}: {message}"))
        return None

    # ------------------------------------------------------------------
    # Application (database) level
    # ------------------------------------------------------------------
    def create_database(self, dbname: str, dbdesc: Optional[str] = None, create_apptoken: bool = False) -> Result:
        return self._call("CreateDatabase", params={
            "dbname": dbname,
            "dbdesc": dbdesc,
            "createapptoken": flag(create_apptoken),
        })

    def clone_database(
        self,
        dbid: str,
        newdbname: str,
        newdbdesc: Optional[str] = None,
        keep_data: bool = False,
        exclude_files: bool = False,
        users_and_roles: bool = False,
    ) -> Result:
        return self._call("CloneDatabase", dbid, {
            "newdbname": newdbname,
            "newdbdesc": newdbdesc,
            "keepData": flag(keep_data),
            "excludefiles": flag(exclude_files),
            "usersandroles": flag(users_and_roles),
        })

    def delete_database(self, dbid: str) -> Result:
        return self._call("DeleteDatabase", dbid)

    def rename_app(self, dbid: str, newappname: str) -> Result:
        return self._call("RenameApp", dbid, {"newappname": newappname})

    def create_table(self, dbid: str, tname: Optional[str] = None, pnoun: Optional[str] = None) -> Result:
        """Add a table to the application dbid. Response carries <newdbid>."""
        return self._call("CreateTable", dbid, {"tname": tname, "pnoun": pnoun})

    def find_db_by_name(self, dbname: str, parents_only: bool = False) -> Result:
        return self._call("FindDBByName", params={"dbname": dbname, "ParentsOnly": flag(parents_only)})

    def granted_dbs(
        self,
        admin_only: bool = False,
        exclude_parents: bool = False,
        include_ancestors: bool = False,
        with_embedded_tables: bool = False,
        realm_apps_only: bool = False,
    ) -> Result:
        """
        API_GrantedDBs: applications and tables the authenticated user can access.
        Unset flags are left to the service defaults.
        """
        return self._call("GrantedDBs", params={
            "adminOnly": flag(admin_only),
            "excludeparents": flag(exclude_parents),
            "includeancestors": flag(include_ancestors),
            "withembeddedtables": flag(with_embedded_tables),
            "realmAppsOnly": flag(realm_apps_only),
        })

    def get_ancestor_info(self, dbid: str) -> Result:
        return self._call("GetAncestorInfo", dbid)

    def get_app_dtm_info(self, dbid: str) -> Result:
        """Sent to db/main; the application id travels as the dbid parameter."""
        return self._call("GetAppDTMInfo", params={"dbid": dbid})

    def get_db_info(self, dbid: str) -> Result:
        return self._call("GetDBInfo", dbid)

    def get_schema(self, dbid: str) -> Result:
        return self._call("GetSchema", dbid)

    def get_num_records(self, dbid: str) -> Result:
        return self._call("GetNumRecords", dbid)

    def get_db_var(self, dbid: str, varname: str) -> Result:
        return self._call("GetDBvar", dbid, {"varname": varname})

    def set_db_var(self, dbid: str, varname: str, value: Any = "") -> Result:
        # value is always sent: an empty value clears the variable
        return self._call("SetDBvar", dbid, {"varname": varname, "value": value})

    def get_db_page(self, dbid: str, page_id: Union[int, str]) -> Result:
        """Raw page body (by page id or name)."""
        return self._call("GetDBPage", dbid, {"pageID": page_id})

    def add_replace_db_page(
        self,
        dbid: str,
        pagebody: str,
        pagename: Optional[str] = None,
        pageid: Optional[int] = None,
        pagetype: Optional[int] = None,
    ) -> Result:
        """
        Create a page (pagename + pagetype) or replace an existing one (pageid).
        pagetype: 1 XSL stylesheet or HTML page, 3 Exact Forms.
        """
        return self._call("AddReplaceDBPage", dbid, {
            "pagename": pagename,
            "pageid": pageid,
            "pagetype": pagetype,
            "pagebody": pagebody,
        }, one_of=("pagename", "pageid"))

    # ------------------------------------------------------------------
    # Fields
    # ------------------------------------------------------------------
    def add_field(
        self, dbid: str, label: str, field_type: str, mode: Optional[str] = None, add_to_forms: bool = False
    ) -> Result:
        """field_type: QuickBase type name ("text", "float", ...). mode: "virtual" (formula) or "lookup"."""
        return self._call("AddField", dbid, {
            "label": label,
            "type": field_type,
            "mode": mode,
            "add_to_forms": flag(add_to_forms),
        })

    def delete_field(self, dbid: str, fid: Union[int, str]) -> Result:
        return self._call("DeleteField", dbid, {"fid": fid})

    def set_key_field(self, dbid: str, fid: Union[int, str]) -> Result:
        return self._call("SetKeyField", dbid, {"fid": fid})

    def set_field_properties(self, dbid: str, fid: Union[int, str], **properties) -> Result:
        """
        Property values are sent as given; booleans become 1/0 here since
        "required=False" must reach the service.
        """
        params: Dict[str, Any] = {"fid": fid}
        for name, value in properties.items():
            params[name] = int(value) if isinstance(value, bool) else value
        return self._call("SetFieldProperties", dbid, params)

    def field_add_choices(self, dbid: str, fid: Union[int, str], choices: Iterable[Any]) -> Result:
        return self._call("FieldAddChoices", dbid, {"fid": fid, "choice": list(choices)})

    def field_remove_choices(self, dbid: str, fid: Union[int, str], choices: Iterable[Any]) -> Result:
        return self._call("FieldRemoveChoices", dbid, {"fid": fid, "choice": list(choices)})

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------
    def add_record(
        self,
        dbid: str,
        fields: FieldMap,
        disprec: bool = False,
        ignore_error: bool = False,
        ms_in_utc: bool = False,
    ) -> Result:
        """
        fields: {fid or field name: value}. Numeric keys are sent as fid="..",
        others as name="..". Values may be ParamEntry to carry extra attributes.
        Response carries <rid> and <update_id>.
        """
        return self._call("AddRecord", dbid, {
            "field": field_entries(fields),
            "disprec": flag(disprec),
            "ignoreError": flag(ignore_error),
            "msInUTC": flag(ms_in_utc),
        })

    def edit_record(
        self,
        dbid: str,
        fields: FieldMap,
        rid: Optional[Union[int, str]] = None,
        key: Optional[str] = None,
        update_id: Optional[Union[int, str]] = None,
        disprec: bool = False,
        ignore_error: bool = False,
        ms_in_utc: bool = False,
    ) -> Result:
        return self._call("EditRecord", dbid, {
            "rid": rid,
            "key": key,
            "update_id": update_id,
            "field": field_entries(fields),
            "disprec": flag(disprec),
            "ignoreError": flag(ignore_error),
            "msInUTC": flag(ms_in_utc),
        }, one_of=("rid", "key"))

    def delete_record(self, dbid: str, rid: Optional[Union[int, str]] = None, key: Optional[str] = None) -> Result:
        return self._call("DeleteRecord", dbid, {"rid": rid, "key": key}, one_of=("rid", "key"))

    def change_record_owner(self, dbid: str, rid: Union[int, str], newowner: str) -> Result:
        return self._call("ChangeRecordOwner", dbid, {"rid": rid, "newowner": newowner})

    def copy_master_detail(
        self,
        dbid: str,
        destrid: Union[int, str],
        sourcerid: Union[int, str],
        copyfid: Optional[Union[int, str]] = None,
        recurse: bool = False,
        relfids: Optional[Union[str, Iterable[Union[int, str]]]] = None,
    ) -> Result:
        """destrid=0 copies the master record too; relfids "all" or a list of report link fids."""
        return self._call("CopyMasterDetail", dbid, {
            "destrid": destrid,
            "sourcerid": sourcerid,
            "copyfid": copyfid,
            "recurse": "true" if recurse else None,
            "relfids": join_list(relfids, sep=","),
        })

    def get_record_info(self, dbid: str, rid: Optional[Union[int, str]] = None, key: Optional[str] = None) -> Result:
        return self._call("GetRecordInfo", dbid, {"rid": rid, "key": key}, one_of=("rid", "key"))

    def get_record_as_html(
        self, dbid: str, rid: Union[int, str], jht: bool = False, dfid: Optional[Union[int, str]] = None
    ) -> Result:
        return self._call("GetRecordAsHTML", dbid, {"rid": rid, "jht": flag(jht), "dfid": dfid})

    def gen_add_record_form(self, dbid: str, fields: Optional[FieldMap] = None) -> Result:
        """HTML add form, pre-filled with fields."""
        return self._call("GenAddRecordForm", dbid, {"field": field_entries(fields)})

    def upload_file(self, dbid: str, rid: Union[int, str], files: Dict[Union[int, str], Tuple[str, bytes]]) -> Result:
        """
        files: {file attachment fid or name: (filename, content)}.
        Content is base64-encoded before sending.
        """
        fields = {}
        for key, (filename, content) in files.items():
            if isinstance(content, str):
                content = content.encode("utf-8")
            fields[key] = ParamEntry(base64.b64encode(content).decode("ascii"), {"filename": filename})
        return self._call("UploadFile", dbid, {"rid": rid, "field": field_entries(fields)})

    def import_from_csv(
        self,
        dbid: str,
        records_csv: str,
        clist: Optional[Iterable[Union[int, str]]] = None,
        clist_output: Optional[Iterable[Union[int, str]]] = None,
        skip_first: bool = False,
        decimal_percent: bool = False,
        ms_in_utc: bool = False,
    ) -> Result:
        return self._call("ImportFromCSV", dbid, {
            "records_csv": records_csv,
            "clist": join_list(clist),
            "clist_output": join_list(clist_output),
            "skipfirst": flag(skip_first),
            "decimalPercent": flag(decimal_percent),
            "msInUTC": flag(ms_in_utc),
        })

    def run_import(self, dbid: str, import_id: Union[int, str]) -> Result:
        return self._call("RunImport", dbid, {"id": import_id})

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def do_query(
        self,
        dbid: str,
        query: Any = None,
        clist: Optional[Iterable[Union[int, str]]] = None,
        slist: Optional[Iterable[Union[int, str]]] = None,
        structured: bool = False,
        num: Optional[int] = None,
        skip: Optional[int] = None,
        only_new: bool = False,
        ascending: bool = True,
        include_rids: bool = False,
        return_percentage: bool = False,
    ) -> Result:
        """
        API_DoQuery.

        query: saved query id (int), saved query name (str) or a list of filter
        expressions such as ["{3.EX.5}"]. Use parse_records() on the result for
        plain dicts.
        """
        params = query_param(query)
        params.update({
            "clist": join_list(clist),
            "slist": join_list(slist),
            "fmt": "structured" if structured else None,
            "options": self._options(num, skip, only_new, ascending),
            "includeRids": flag(include_rids),
            "returnpercentage": flag(return_percentage),
        })
        return self._call("DoQuery", dbid, params)

    def do_query_count(self, dbid: str, query: Any = None) -> Result:
        return self._call("DoQueryCount", dbid, query_param(query))

    def purge_records(self, dbid: str, query: Any = None) -> Result:
        """Deletes every record matching query; with no query the table is emptied."""
        return self._call("PurgeRecords", dbid, query_param(query))

    def gen_results_table(
        self,
        dbid: str,
        query: Any = None,
        clist: Optional[Iterable[Union[int, str]]] = None,
        slist: Optional[Iterable[Union[int, str]]] = None,
        jht: bool = False,
        jsa: bool = False,
        num: Optional[int] = None,
        skip: Optional[int] = None,
        only_new: bool = False,
        ascending: bool = True,
        options: Optional[Iterable[str]] = None,
    ) -> Result:
        """
        Query results as an HTML table, or JavaScript when jht/jsa is set.
        options takes the remaining display options verbatim ("csv", "ned", "nvw", ...).
        """
        params = query_param(query)
        params.update({
            "clist": join_list(clist),
            "slist": join_list(slist),
            "jht": flag(jht),
            "jsa": flag(jsa),
            "options": self._options(num, skip, only_new, ascending, options),
        })
        return self._call("GenResultsTable", dbid, params)

    # ------------------------------------------------------------------
    # Users and roles
    # ------------------------------------------------------------------
    def get_user_info(self, email: Optional[str] = None) -> Result:
        """Without email, describes the authenticated user."""
        return self._call("GetUserInfo", params={"email": email})

    def get_user_role(self, dbid: str, userid: str, include_groups: bool = False) -> Result:
        return self._call("GetUserRole", dbid, {"userid": userid, "inclgrps": flag(include_groups)})

    def get_role_info(self, dbid: str) -> Result:
        return self._call("GetRoleInfo", dbid)

    def user_roles(self, dbid: str) -> Result:
        return self._call("UserRoles", dbid)

    def add_user_to_role(self, dbid: str, userid: str, roleid: Union[int, str]) -> Result:
        return self._call("AddUserToRole", dbid, {"userid": userid, "roleid": roleid})

    def remove_user_from_role(self, dbid: str, userid: str, roleid: Union[int, str]) -> Result:
        return self._call("RemoveUserFromRole", dbid, {"userid": userid, "roleid": roleid})

    def change_user_role(
        self, dbid: str, userid: str, roleid: Union[int, str], newroleid: Optional[Union[int, str]] = None
    ) -> Result:
        """An empty newroleid is still sent; it disables the user's access."""
        return self._call("ChangeUserRole", dbid, {"userid": userid, "roleid": roleid, "newroleid": newroleid})

    def provision_user(
        self,
        dbid: str,
        email: str,
        roleid: Optional[Union[int, str]] = None,
        fname: Optional[str] = None,
        lname: Optional[str] = None,
    ) -> Result:
        return self._call("ProvisionUser", dbid, {"email": email, "roleid": roleid, "fname": fname, "lname": lname})

    def send_invitation(self, dbid: str, userid: str, usertext: Optional[str] = None) -> Result:
        return self._call("SendInvitation", dbid, {"userid": userid, "usertext": usertext})

"""CLI entry point for the qbxml package."""
from __future__ import annotations

import json
import logging
from typing import Optional, Tuple
from xml.etree import ElementTree

import click

from .config import AppConfig
from .services.quickbase_client import QuickbaseClient
from .services.xml_codec import parse_records

log = logging.getLogger("qbxml")


def _emit(client: QuickbaseClient, resp) -> None:
    """Print a response, or errmsg and exit 1 when the call failed."""
    if resp is None:
        click.echo(client.errmsg, err=True)
        click.get_current_context().exit(1)
    if isinstance(resp, str):
        click.echo(resp)
    else:
        click.echo(ElementTree.tostring(resp, encoding="unicode"))


@click.group()
@click.option("--realm", "-r", help="QuickBase realm (subdomain).")
@click.option("--username", "-u", help="Overrides QB_USERNAME.")
@click.option("--password", "-p", help="Overrides QB_PASSWORD.")
@click.option("--apptoken", help="Overrides QB_APPTOKEN.")
@click.option("--debug", is_flag=True, help="Log request parameters and XML bodies.")
@click.pass_context
def main(ctx: click.Context, realm: Optional[str], username: Optional[str], password: Optional[str],
         apptoken: Optional[str], debug: bool) -> None:
    """QuickBase XML API command-line tool."""
    cfg = AppConfig()
    level = "DEBUG" if debug else cfg.LOG_LEVEL
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s"
    )
    client = QuickbaseClient.from_config(cfg)
    client.debug = client.debug or debug
    client.session.merge(realm=realm, username=username, password=password, apptoken=apptoken)
    ctx.obj = client


@main.command("auth")
@click.pass_obj
def auth_cmd(client: QuickbaseClient) -> None:
    """Authenticate and print the ticket."""
    if not client.authenticate():
        click.echo(client.errmsg, err=True)
        click.get_current_context().exit(1)
    click.echo(json.dumps({"ticket": client.ticket, "userid": client.userid}, indent=2))


@main.command("granted-dbs")
@click.option("--admin-only", is_flag=True)
@click.option("--exclude-parents", is_flag=True)
@click.pass_obj
def granted_dbs_cmd(client: QuickbaseClient, admin_only: bool, exclude_parents: bool) -> None:
    """List applications and tables visible to the user."""
    resp = client.granted_dbs(admin_only=admin_only, exclude_parents=exclude_parents)
    if resp is None:
        _emit(client, resp)
    for db in resp.iter("dbinfo"):
        click.echo(f"{db.findtext('dbid')}\t{db.findtext('dbname')}")


@main.command("db-info")
@click.argument("dbid")
@click.pass_obj
def db_info_cmd(client: QuickbaseClient, dbid: str) -> None:
    """Print API_GetDBInfo for DBID."""
    _emit(client, client.get_db_info(dbid))


@main.command("schema")
@click.argument("dbid")
@click.pass_obj
def schema_cmd(client: QuickbaseClient, dbid: str) -> None:
    """Print API_GetSchema for DBID."""
    _emit(client, client.get_schema(dbid))


def _query_arg(query: Optional[str], qid: Optional[int], qname: Optional[str]):
    if query:
        return [query]
    return qid if qid is not None else qname


@main.command("query")
@click.argument("dbid")
@click.option("--query", "-q", help="Filter expression, e.g. '{3.EX.5}'.")
@click.option("--qid", type=int, help="Saved query id.")
@click.option("--qname", help="Saved query name.")
@click.option("--clist", "-c", multiple=True, help="Field id to return (repeatable).")
@click.option("--slist", "-s", multiple=True, help="Field id to sort by (repeatable).")
@click.option("--num", type=int, help="Maximum records to return.")
@click.option("--skip", type=int, help="Records to skip.")
@click.pass_obj
def query_cmd(client: QuickbaseClient, dbid: str, query: Optional[str], qid: Optional[int],
              qname: Optional[str], clist: Tuple[str, ...], slist: Tuple[str, ...],
              num: Optional[int], skip: Optional[int]) -> None:
    """Run API_DoQuery against DBID and print records as JSON."""
    resp = client.do_query(
        dbid,
        query=_query_arg(query, qid, qname),
        clist=list(clist),
        slist=list(slist),
        num=num,
        skip=skip,
        include_rids=True,
    )
    if resp is None:
        _emit(client, resp)
    records = parse_records(resp)
    click.echo(json.dumps(records, indent=2))
    log.info(f"{len(records)} records from {dbid}")


@main.command("count")
@click.argument("dbid")
@click.option("--query", "-q", help="Filter expression, e.g. '{3.EX.5}'.")
@click.option("--qid", type=int, help="Saved query id.")
@click.option("--qname", help="Saved query name.")
@click.pass_obj
def count_cmd(client: QuickbaseClient, dbid: str, query: Optional[str], qid: Optional[int],
              qname: Optional[str]) -> None:
    """Count records in DBID matching a query."""
    resp = client.do_query_count(dbid, _query_arg(query, qid, qname))
    if resp is None:
        _emit(client, resp)
    click.echo(resp.findtext("numMatches"))


@main.command("num-records")
@click.argument("dbid")
@click.pass_obj
def num_records_cmd(client: QuickbaseClient, dbid: str) -> None:
    """Total number of records in DBID."""
    resp = client.get_num_records(dbid)
    if resp is None:
        _emit(client, resp)
    click.echo(resp.findtext("num_records"))


@main.command("sign-out")
@click.pass_obj
def sign_out_cmd(client: QuickbaseClient) -> None:
    """End the ticket session."""
    _emit(client, client.sign_out())


if __name__ == "__main__":
    main()

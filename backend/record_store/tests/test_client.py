from __future__ import annotations

import json

import pytest
import requests

from record_store import load
from record_store.client import (
    AirtableClient,
    RecordNotFound,
    RecordStoreConfigError,
    RecordStoreError,
    RecordStoreUnavailable,
)


def make_response(status=200, payload=None, text=None):
    resp = requests.Response()
    resp.status_code = status
    body = json.dumps(payload) if payload is not None else (text or "")
    resp._content = body.encode("utf-8")
    resp.encoding = "utf-8"
    return resp


class FakeSession(requests.Session):
    def __init__(self, responses):
        super().__init__()
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


def make_client(*responses):
    session = FakeSession(responses)
    client = AirtableClient(api_key="patTEST", base_id="appBASE", timeout=7, session=session)
    return client, session


def test_missing_credentials_rejected():
    with pytest.raises(RecordStoreConfigError):
        AirtableClient(api_key="", base_id="appBASE")


def test_get_record_sends_auth_and_timeout():
    client, session = make_client(make_response(payload={"id": "recAAAAAAAAAAAAAA", "fields": {}}))
    record = client.get_record("tbl9d2UhyRrNVjGxW", "recAAAAAAAAAAAAAA")
    assert record["id"] == "recAAAAAAAAAAAAAA"
    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert url == "https://api.airtable.com/v0/appBASE/tbl9d2UhyRrNVjGxW/recAAAAAAAAAAAAAA"
    assert kwargs["timeout"] == 7
    assert session.headers["Authorization"] == "Bearer patTEST"


def test_table_names_are_url_quoted():
    client, session = make_client(make_response(payload={"records": []}))
    client.list_records("מארזים")
    url = session.calls[0][1]
    assert "מארזים" not in url
    assert url.startswith("https://api.airtable.com/v0/appBASE/%D7%9E")


def test_list_records_follows_offset():
    client, session = make_client(
        make_response(payload={"records": [{"id": "rec1"}], "offset": "itrNEXT"}),
        make_response(payload={"records": [{"id": "rec2"}]}),
    )
    records = client.list_records("products", filter_by_formula="{פעיל} = TRUE()")
    assert [r["id"] for r in records] == ["rec1", "rec2"]
    assert "offset" not in session.calls[0][2]["params"]
    assert session.calls[1][2]["params"]["offset"] == "itrNEXT"
    assert session.calls[1][2]["params"]["filterByFormula"] == "{פעיל} = TRUE()"


def test_max_records_caps_page_size():
    client, session = make_client(make_response(payload={"records": []}))
    client.list_records("packages", max_records=20)
    params = session.calls[0][2]["params"]
    assert params["maxRecords"] == 20
    assert params["pageSize"] == 20


def test_update_record_patches_fields():
    client, session = make_client(make_response(payload={"id": "recAAAAAAAAAAAAAA", "fields": {"סטאטוס": "נשלח"}}))
    client.update_record("quotes", "recAAAAAAAAAAAAAA", {"סטאטוס": "נשלח"})
    method, url, kwargs = session.calls[0]
    assert method == "PATCH"
    assert kwargs["json"] == {"fields": {"סטאטוס": "נשלח"}}


def test_404_maps_to_record_not_found():
    client, _ = make_client(make_response(status=404, payload={"error": "NOT_FOUND"}))
    with pytest.raises(RecordNotFound) as excinfo:
        client.get_record("quotes", "recAAAAAAAAAAAAAA")
    assert excinfo.value.status_code == 404


def test_422_keeps_status_code():
    client, _ = make_client(make_response(status=422, payload={"error": {"type": "INVALID_FILTER_BY_FORMULA"}}))
    with pytest.raises(RecordStoreError) as excinfo:
        client.list_records("packages", filter_by_formula="{פעיל} = TRUE()")
    assert excinfo.value.status_code == 422
    assert "INVALID_FILTER_BY_FORMULA" in str(excinfo.value)


@pytest.mark.parametrize("exc", [requests.Timeout("slow"), requests.ConnectionError("down")])
def test_network_failures_are_unavailable(exc):
    client, _ = make_client(exc)
    with pytest.raises(RecordStoreUnavailable):
        client.create_record("quotes", {"שם לקוח": "x"})


def test_non_json_body_is_an_error():
    client, _ = make_client(make_response(text="<html>gateway</html>"))
    with pytest.raises(RecordStoreError):
        client.get_record("quotes", "recAAAAAAAAAAAAAA")


def test_list_tables_uses_meta_endpoint():
    client, session = make_client(
        make_response(payload={"tables": [{"id": "tbl1", "name": "מוצרים", "fields": [{}, {}]}]})
    )
    tables = client.list_tables()
    assert session.calls[0][1] == "https://api.airtable.com/v0/meta/bases/appBASE/tables"
    assert tables == [{"id": "tbl1", "name": "מוצרים", "fields_count": 2}]


def test_load_builds_gateway_from_config():
    gateway = load(
        {
            "API_KEY": "patX",
            "BASE_ID": "appY",
            "API_URL": "",
            "TIMEOUT": 3,
            "TABLES": {"quotes": "tblQ"},
        }
    )
    assert gateway.client.base_id == "appY"
    assert gateway.client.timeout == 3
    assert gateway.tables["quotes"] == "tblQ"


def test_load_without_credentials_fails():
    with pytest.raises(RecordStoreConfigError):
        load({"API_KEY": "", "BASE_ID": "", "TABLES": {}})

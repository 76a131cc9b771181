"""Tests for the HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from conftest import write_docs

from tkml.api import create_app
from tkml.config import ServerConfig

RAW = {"Accept": "application/tkml"}


@pytest.fixture
def client(tmp_path):
    config = ServerConfig(root_dir=tmp_path, watch=False)
    with TestClient(create_app(config)) as client:
        yield client


def test_get_raw_markup(tmp_path, client):
    write_docs(tmp_path, {"index.tkml": "<p><?= queryParams.q ?></p>"})
    response = client.get("/?q=hi", headers=RAW)

    assert response.status_code == 200
    assert response.text == "<p>hi</p>"
    assert response.headers["content-type"].startswith("application/tkml")
    assert response.headers["access-control-allow-origin"] == "*"


def test_get_html_page(tmp_path, client):
    write_docs(tmp_path, {"docs/index.tkml": "<p>docs</p>"})
    response = client.get("/docs/", headers={"Accept": "text/html"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "<p>docs</p>" in response.text
    assert "new TKML(" in response.text


def test_missing_document(client):
    response = client.get("/missing.tkml")
    assert response.status_code == 404
    assert response.text == "TKML file not found: missing.tkml"


def test_parse_error(tmp_path, client):
    write_docs(tmp_path, {"index.tkml": "<? broken"})
    response = client.get("/", headers=RAW)
    assert response.status_code == 500
    assert response.text.startswith("Parse error: ")


def test_options_preflight(client):
    response = client.options("/anything/here")
    assert response.status_code == 204
    assert response.headers["access-control-allow-origin"] == "*"
    assert "POST" in response.headers["access-control-allow-methods"]
    assert response.headers["access-control-max-age"] == "86400"


def test_post_json_body(tmp_path, client):
    write_docs(tmp_path, {"form.tkml": "Hi <?= formParams.name ?>"})
    response = client.post("/form.tkml", json={"name": "Ann"}, headers=RAW)
    assert response.text == "Hi Ann"


def test_post_form_body(tmp_path, client):
    write_docs(tmp_path, {"form.tkml": "Hi <?= formParams.name ?>"})
    response = client.post("/form.tkml", data={"name": "Bob"}, headers=RAW)
    assert response.text == "Hi Bob"


def test_post_invalid_json_gives_empty_form(tmp_path, client):
    write_docs(tmp_path, {"form.tkml": "[<?= formParams | length ?>]"})
    response = client.post(
        "/form.tkml",
        content=b"{not json",
        headers={**RAW, "Content-Type": "application/json"},
    )
    assert response.status_code == 200
    assert response.text == "[0]"


def test_static_file(tmp_path, client):
    write_docs(tmp_path, {"js/app.js": "console.log(1)"})
    response = client.get("/js/app.js")

    assert response.status_code == 200
    assert response.text == "console.log(1)"
    assert response.headers["content-type"].startswith("application/javascript")
    assert response.headers["cache-control"] == "max-age=3600"


def test_missing_static_file(client):
    response = client.get("/nope.css")
    assert response.status_code == 404
    assert response.text == "File not found: nope.css"


def test_service_is_shared_across_requests(tmp_path, client):
    write_docs(tmp_path, {"index.tkml": "x"})
    client.get("/", headers=RAW)
    client.get("/", headers=RAW)

    cache = client.app.state.service.cache
    assert cache.stats.hits == 1

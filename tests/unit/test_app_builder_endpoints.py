"""HTTP-level tests for the index, query and fix routes."""

from __future__ import annotations

import json

import pytest
from starlette.testclient import TestClient

from search_bridge.app import create_app
from search_bridge.catalog import CATALOG_FILENAME
from search_bridge.config import Settings
from search_bridge.registry import IndexRegistry
from tests.fixtures.indexes import EN_DOCS, ES_DOCS


QUERY_PAGE = {"limit": "10", "offset": "0"}


@pytest.fixture
def settings(tmp_path):
    return Settings(_env_file=None, cache_dir=tmp_path / "cache")


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def en_path(make_index):
    return str(make_index("en_docs", EN_DOCS, language="en", spelling=True))


@pytest.fixture
def es_path(make_index):
    return str(make_index("es_docs", ES_DOCS, language="es"))


@pytest.mark.unit
class TestIndexRoutes:
    def test_put_get_delete_roundtrip(self, client, en_path):
        assert client.get("/docs").status_code == 404

        put = client.put("/docs", params={"path": en_path, "lang": "en"})
        assert put.status_code == 200
        assert put.json() == {}

        assert client.get("/docs").status_code == 200
        assert client.delete("/docs").status_code == 200
        assert client.get("/docs").status_code == 404

    def test_put_without_path_is_bad_request(self, client):
        response = client.put("/docs")

        assert response.status_code == 400
        assert "path" in response.json()["error"]

    def test_put_with_invalid_path_is_forbidden(self, client, tmp_path):
        response = client.put("/docs", params={"path": str(tmp_path / "missing")})

        assert response.status_code == 403

    def test_put_with_unsupported_language_is_forbidden(self, client, en_path):
        response = client.put("/docs", params={"path": en_path, "lang": "klingon"})

        assert response.status_code == 403
        assert client.get("/docs").status_code == 404

    def test_delete_unknown_index_is_not_found(self, client):
        assert client.delete("/docs").status_code == 404

    @pytest.mark.parametrize("name", ["_all", "_en", "_whatever"])
    def test_writes_to_reserved_names_are_not_allowed(self, client, en_path, name):
        put = client.put(f"/{name}", params={"path": en_path})
        delete = client.delete(f"/{name}")

        assert put.status_code == 405
        assert put.headers["allow"] == "GET"
        assert delete.status_code == 405
        assert delete.headers["allow"] == "GET"

    def test_aggregate_names_exist_for_known_languages(self, client, en_path):
        assert client.get("/_all").status_code == 200
        assert client.get("/_en").status_code == 404

        client.put("/docs", params={"path": en_path, "lang": "en"})

        assert client.get("/_en").status_code == 200
        assert client.get("/_es").status_code == 404

    def test_put_is_persisted_to_catalog(self, client, settings, en_path):
        client.put("/docs", params={"path": en_path, "lang": "en"})

        catalog = json.loads((settings.cache_dir / CATALOG_FILENAME).read_text())
        assert catalog == {"docs": {"path": en_path, "lang": "en"}}

    def test_catalog_is_restored_on_startup(self, settings, en_path):
        with TestClient(create_app(settings)) as first:
            first.put("/docs", params={"path": en_path, "lang": "en"})

        with TestClient(create_app(settings)) as second:
            assert second.get("/docs").status_code == 200


@pytest.mark.unit
class TestQueryRoutes:
    @pytest.fixture
    def loaded(self, client, en_path, es_path):
        client.put("/en_docs", params={"path": en_path, "lang": "en"})
        client.put("/es_docs", params={"path": es_path, "lang": "es"})
        return client

    def test_query_single_index(self, loaded):
        response = loaded.get("/en_docs/query", params={"q": "running", **QUERY_PAGE})

        assert response.status_code == 200
        body = response.json()
        assert body["numResults"] == 1
        assert body["offset"] == 0
        assert body["query"] == "running"
        assert body["results"][0]["id"] == "en-1"

    def test_query_all(self, loaded):
        response = loaded.get("/_all/query", params={"matchAll": "", **QUERY_PAGE})

        assert response.status_code == 200
        assert response.json()["numResults"] == 3

    def test_query_language_view(self, loaded):
        response = loaded.get("/_es/query", params={"matchAll": "", **QUERY_PAGE})

        assert [record["id"] for record in response.json()["results"]] == ["es-1"]

    def test_missing_paging_parameters(self, loaded):
        response = loaded.get("/en_docs/query", params={"q": "running"})

        assert response.status_code == 400

    def test_q_and_match_all_are_exclusive(self, loaded):
        response = loaded.get("/en_docs/query", params={"q": "running", "matchAll": "", **QUERY_PAGE})

        assert response.status_code == 400

    def test_query_unknown_index(self, loaded):
        assert loaded.get("/nope/query", params={"q": "x", **QUERY_PAGE}).status_code == 404
        assert loaded.get("/_fr/query", params={"q": "x", **QUERY_PAGE}).status_code == 404

    def test_fix(self, loaded):
        response = loaded.get("/en_docs/fix", params={"q": "pastta"})

        assert response.status_code == 200
        assert response.json() == {"spellCorrectedQuery": "pasta"}

    def test_fix_requires_q(self, loaded):
        assert loaded.get("/en_docs/fix").status_code == 400
        assert loaded.get("/en_docs/fix", params={"q": "x", "matchAll": ""}).status_code == 400

    def test_fix_on_aggregate_is_not_found(self, loaded):
        assert loaded.get("/_all/fix", params={"q": "pastta"}).status_code == 404


@pytest.mark.unit
class TestServiceRoutes:
    def test_health_reports_indexes_and_languages(self, client, en_path):
        client.put("/docs", params={"path": en_path, "lang": "en"})

        response = client.get("/_/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "indexes": 1, "languages": ["en"]}

    def test_metrics_are_exposed(self, client):
        client.get("/_/health")

        response = client.get("/_/metrics")

        assert response.status_code == 200
        assert "search_bridge_requests_total" in response.text

    def test_trace_id_header_is_echoed(self, client):
        response = client.get("/_/health", headers={"X-Trace-Id": "abc123"})

        assert response.headers["x-trace-id"] == "abc123"


@pytest.mark.unit
def test_explicit_registry_is_used_without_restore(settings, make_index):
    registry = IndexRegistry()
    registry.create_index("docs", make_index("docs", EN_DOCS))

    with TestClient(create_app(settings, registry)) as client:
        assert client.get("/docs").status_code == 200


@pytest.mark.unit
def test_empty_language_does_not_create_an_underscore_view(settings, make_index):
    registry = IndexRegistry()
    registry.create_index("docs", make_index("docs", EN_DOCS), "")

    with TestClient(create_app(settings, registry)) as client:
        assert client.get("/_none").status_code == 200
        assert client.get("/_/query", params={"matchAll": "", **QUERY_PAGE}).status_code == 404

"""
Unit tests for the gateway API endpoints.

The gateway is wired with mocked HTTP transports and the catalog points at a
temporary images directory, so no request leaves the process.
"""

import base64
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from chimera.api.gateway_api import get_catalog, get_config, get_gateway
from chimera.app import app
from chimera.catalog import ImageCatalog
from chimera.config.settings import GatewayConfig
from chimera.gateway.classification_cache import ClassificationCache, RecordStore
from chimera.gateway.classification_client import ClassificationClient
from chimera.gateway.models import ProviderEndpoint
from chimera.gateway.router import GenerationFallbackRouter
from chimera.gateway.service import CapabilityGateway
from chimera.gateway.token_manager import TokenManager

TOKEN_URL = "https://auth.example.com/oauth/2.0/token"
CLASSIFY_URL = "https://vision.example.com/rest/2.0/image-classify/v1/animal"
A_URL = "https://a.example.com/v1/images/generations"
B_URL_1 = "https://b.example.com/v1/images/generations"
B_URL_2 = "https://b.example.com/images/generations"

ELEPHANT = {"log_id": 5, "result": [{"name": "African elephant", "score": "0.9"}]}


@pytest.fixture
def images_dir(tmp_path):
    directory = tmp_path / "animals"
    directory.mkdir()
    (directory / "ele_back.jpg").write_bytes(b"\xff\xd8back")
    (directory / "ele_tail fur.jpg").write_bytes(b"\xff\xd8tail")
    (directory / "notes.txt").write_text("not an image")
    return directory


@pytest.fixture
def api_client(make_http_client, credentials, provider_a, provider_b, images_dir):
    """Build a TestClient around a gateway whose upstreams are ``handler``."""

    def factory(handler, with_credentials=True, with_key=True):
        client = make_http_client(handler)
        providers = (provider_a, provider_b) if with_key else (
            ProviderEndpoint(
                provider_id="A",
                base_host=provider_a.base_host,
                paths=provider_a.paths,
                model_id=provider_a.model_id,
            ),
        )
        config = GatewayConfig(
            generation_providers=providers,
            classification_credentials=credentials if with_credentials else None,
            images_dir=images_dir,
            records_dir=images_dir,
        )
        cache = None
        if with_credentials:
            cache = ClassificationCache(
                TokenManager(TOKEN_URL, client=client),
                ClassificationClient(CLASSIFY_URL, client=client),
                credentials,
                store=RecordStore(images_dir),
            )
        gateway = CapabilityGateway(
            GenerationFallbackRouter(providers, client=client), cache=cache
        )

        app.dependency_overrides[get_config] = lambda: config
        app.dependency_overrides[get_gateway] = lambda: gateway
        app.dependency_overrides[get_catalog] = lambda: ImageCatalog(images_dir)
        return TestClient(app)

    yield factory
    app.dependency_overrides.clear()


@pytest.fixture
def classify_handler(recording_handler):
    return recording_handler(
        {
            TOKEN_URL: [httpx.Response(200, json={"access_token": "tok"})],
            CLASSIFY_URL: [httpx.Response(200, json=ELEPHANT)],
        }
    )


class TestListEndpoint:
    """Test GET /api/animals/list."""

    def test_lists_images(self, api_client, recording_handler):
        client = api_client(recording_handler({}))

        response = client.get("/api/animals/list")

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert data["images"] == [
            {"id": "ele_back", "filename": "ele_back.jpg", "name": "Back"},
            {"id": "ele_tail_fur", "filename": "ele_tail fur.jpg", "name": "Tail Fur"},
        ]

    def test_missing_directory(self, api_client, recording_handler, tmp_path):
        client = api_client(recording_handler({}))
        app.dependency_overrides[get_catalog] = lambda: ImageCatalog(tmp_path / "missing")

        response = client.get("/api/animals/list")

        assert response.status_code == 404


class TestIdentifyEndpoint:
    """Test POST /api/animals/identify."""

    def test_identify_catalog_image(self, api_client, classify_handler, images_dir):
        client = api_client(classify_handler)

        first = client.post("/api/animals/identify", json={"filename": "ele_back.jpg"})
        second = client.post("/api/animals/identify", json={"filename": "ele_back.jpg"})

        assert first.status_code == 200
        body = first.json()
        assert body["success"] is True
        assert body["identity"] == "ele_back"
        assert body["fromCache"] is False
        assert body["labels"] == [{"name": "African elephant", "score": 0.9}]
        assert second.json()["fromCache"] is True
        assert classify_handler.count(CLASSIFY_URL) == 1

        record = json.loads((images_dir / "ele_back.animal.json").read_text(encoding="utf-8"))
        assert record["log_id"] == "5"

    def test_identity_normalizes_whitespace(self, api_client, classify_handler):
        client = api_client(classify_handler)

        response = client.post("/api/animals/identify", json={"filename": "ele_tail fur.jpg"})

        assert response.json()["identity"] == "ele_tail_fur"

    def test_identify_upload(self, api_client, classify_handler):
        client = api_client(classify_handler)
        payload = {
            "imageBase64": base64.b64encode(b"\xff\xd8upload").decode("ascii"),
            "identity": "visitor drawing",
        }

        response = client.post("/api/animals/identify", json=payload)

        assert response.status_code == 200
        assert response.json()["identity"] == "visitor_drawing"

    def test_upload_requires_identity(self, api_client, classify_handler):
        client = api_client(classify_handler)
        payload = {"imageBase64": base64.b64encode(b"x").decode("ascii")}

        response = client.post("/api/animals/identify", json=payload)

        assert response.status_code == 400
        assert classify_handler.requests == []

    def test_invalid_base64(self, api_client, classify_handler):
        client = api_client(classify_handler)

        response = client.post(
            "/api/animals/identify", json={"imageBase64": "not base64!!", "identity": "x"}
        )

        assert response.status_code == 400

    def test_no_image(self, api_client, classify_handler):
        response = api_client(classify_handler).post("/api/animals/identify", json={})

        assert response.status_code == 400
        assert response.json()["detail"] == "No image provided"

    def test_path_traversal(self, api_client, classify_handler):
        response = api_client(classify_handler).post(
            "/api/animals/identify", json={"filename": "../secret.jpg"}
        )

        assert response.status_code == 403

    def test_unknown_image(self, api_client, classify_handler):
        response = api_client(classify_handler).post(
            "/api/animals/identify", json={"filename": "ele_trunk.jpg"}
        )

        assert response.status_code == 404

    def test_missing_credentials(self, api_client, classify_handler):
        client = api_client(classify_handler, with_credentials=False)

        response = client.post("/api/animals/identify", json={"filename": "ele_back.jpg"})

        assert response.status_code == 500
        assert "hint" in response.json()
        assert client.get("/api/animals/identify").json()["has_credentials"] is False

    def test_upstream_failure(self, api_client, recording_handler):
        handler = recording_handler(
            {
                TOKEN_URL: [httpx.Response(200, json={"access_token": "tok"})],
                CLASSIFY_URL: [httpx.Response(500, json={"error_msg": "internal"})],
            }
        )

        response = api_client(handler).post("/api/animals/identify", json={"filename": "ele_back.jpg"})

        assert response.status_code == 502
        assert response.json()["kind"] == "upstream_error"


class TestImageEndpoint:
    """Test POST /api/image."""

    def test_generate_with_fallback(self, api_client, recording_handler):
        handler = recording_handler(
            {
                A_URL: [httpx.Response(401, json={"error": {"code": "invalid_api_key"}})],
                B_URL_1: [httpx.Response(200, json={"data": [{"b64_json": "aW1hZ2U="}]})],
            }
        )

        response = api_client(handler).post("/api/image", json={"prompt": "a chimera"})

        assert response.status_code == 200
        body = response.json()
        assert body["imageBase64"] == "aW1hZ2U="
        assert [a["providerId"] for a in body["attempts"]] == ["A", "B"]
        assert "sk-test" not in response.text

    def test_exhausted(self, api_client, recording_handler):
        handler = recording_handler(
            {
                A_URL: [httpx.ConnectError("[Errno 111] Connection refused")],
                B_URL_1: [httpx.ConnectError("[Errno 111] Connection refused")],
                B_URL_2: [httpx.ConnectError("[Errno 111] Connection refused")],
            }
        )

        response = api_client(handler).post("/api/image", json={"prompt": "a chimera"})

        assert response.status_code == 502
        body = response.json()
        assert body["kind"] == "connection_refused"
        assert len(body["attempts"]) == 3

    def test_missing_prompt(self, api_client, recording_handler):
        response = api_client(recording_handler({})).post("/api/image", json={})

        assert response.status_code == 400

    def test_missing_key(self, api_client, recording_handler):
        handler = recording_handler({})
        client = api_client(handler, with_key=False)

        response = client.post("/api/image", json={"prompt": "a chimera"})

        assert response.status_code == 500
        assert handler.requests == []

    def test_hint(self, api_client, recording_handler):
        response = api_client(recording_handler({})).get("/api/image")

        assert response.status_code == 200
        body = response.json()
        assert body["has_key"] is True
        assert [p["providerId"] for p in body["providers"]] == ["A", "B"]
        assert "sk-test" not in response.text


class TestHealth:
    def test_health(self):
        assert TestClient(app).get("/health").json() == {"status": "ok"}

"""Tests for gateway data model."""

from datetime import datetime, timezone

import pytest

from chimera.gateway.exceptions import ErrorKind
from chimera.gateway.models import (
    AttemptFailure,
    AttemptSuccess,
    ClassificationRecord,
    ClientCredentials,
    GenerationAttempt,
    ImageIdentity,
    ProviderEndpoint,
    RankedLabel,
    public_url,
)


class TestImageIdentity:
    """Test identity derivation from file names."""

    @pytest.mark.parametrize(
        "filename, expected",
        [
            ("ele_back.jpg", "ele_back"),
            ("ele_tail fur.jpg", "ele_tail_fur"),
            ("ele_tail   fur.PNG", "ele_tail_fur"),
            ("data/animals/ele_1.jpeg", "ele_1"),
            ("ele_1", "ele_1"),
        ],
    )
    def test_from_filename(self, filename, expected):
        assert ImageIdentity.from_filename(filename).value == expected

    def test_same_name_same_identity(self):
        assert ImageIdentity.from_filename("a b.jpg") == ImageIdentity.from_filename("a b.png")

    @pytest.mark.parametrize("value", ["", "  ", "../etc", "a/b", "a\\b", ".."])
    def test_rejects_invalid(self, value):
        with pytest.raises(ValueError):
            ImageIdentity(value)


class TestClassificationRecord:
    """Test record serialization."""

    def test_round_trip_keeps_order(self):
        record = ClassificationRecord(
            identity=ImageIdentity("ele_back"),
            labels=(RankedLabel("African elephant", 0.91), RankedLabel("Asian elephant", 0.07)),
            log_id="12345",
            created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )
        restored = ClassificationRecord.from_dict(record.to_dict())
        assert restored == record

    def test_from_provider_payload(self):
        """Paired files written by older tooling carry no identity."""
        data = {"log_id": 987, "result": [{"name": "Fox", "score": "0.8"}, {"score": "0.1"}]}
        record = ClassificationRecord.from_dict(data, identity=ImageIdentity("fox"))
        assert record.log_id == "987"
        assert record.labels == (RankedLabel("Fox", 0.8),)

    def test_immutable(self):
        record = ClassificationRecord(ImageIdentity("x"), (), None)
        with pytest.raises(AttributeError):
            record.log_id = "changed"

    def test_label_score_range(self):
        with pytest.raises(ValueError):
            RankedLabel("bad", 1.5)


class TestProviderEndpoint:
    """Test provider endpoint helpers."""

    def test_resolve_url(self, provider_b):
        assert provider_b.resolve_url("/images/generations") == "https://b.example.com/images/generations"

    def test_resolve_url_replaces_base_path(self):
        endpoint = ProviderEndpoint("s", "https://gw.example.edu/api/", ("/v1/x",), "m")
        assert endpoint.resolve_url("/v1/x") == "https://gw.example.edu/v1/x"

    def test_auth_headers(self, provider_a):
        assert provider_a.auth_headers() == {"Authorization": "Bearer sk-test-a"}
        assert ProviderEndpoint("n", "https://n", ("/p",), "m").auth_headers() == {}

    def test_secrets_not_in_repr(self, provider_a):
        assert "sk-test-a" not in repr(provider_a)
        assert "s3cret" not in repr(ClientCredentials("id", "s3cret"))

    def test_requires_paths(self):
        with pytest.raises(ValueError):
            ProviderEndpoint("n", "https://n", (), "m")


class TestPublicViews:
    """Test that user-facing views leak nothing beyond host and path."""

    def test_public_url_strips_query_and_userinfo(self):
        url = "https://user:pw@api.example.com:8443/v1/images?key=secret"
        assert public_url(url) == "https://api.example.com:8443/v1/images"

    def test_attempt_public_dict(self):
        attempt = GenerationAttempt(
            provider_id="A",
            url="https://a.example.com/v1/images/generations?token=abc",
            outcome=AttemptFailure(ErrorKind.INVALID_CREDENTIALS, {"error": "sk-abc"}),
            http_status=401,
        )
        assert attempt.public_dict() == {
            "providerId": "A",
            "url": "https://a.example.com/v1/images/generations",
            "status": 401,
            "kind": "invalid_credentials",
        }

    def test_successful_attempt(self):
        attempt = GenerationAttempt("A", "https://a", AttemptSuccess("aGk="), 200)
        assert attempt.succeeded
        assert attempt.error_kind is None
        assert attempt.public_dict()["kind"] is None

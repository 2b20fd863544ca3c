"""Tests for attestation issuers."""

import pytest
import requests
from unittest.mock import MagicMock, patch
from oracles.attestation import InMemoryAttestationIssuer, HttpAttestationIssuer, AttestationError
from voting.models import AttestationRequest


def _request(recipient="alice"):
    return AttestationRequest(schema="quadvote.membership.v1", recipient=recipient, project="0xproj",
                              data={"is_verified": True})


class TestInMemory:

    def test_unique_ids(self):
        issuer = InMemoryAttestationIssuer()
        first = issuer.attest(_request())
        second = issuer.attest(_request())
        assert first != second
        assert issuer.attestations_for("alice") == [first, second]

    def test_failure(self):
        issuer = InMemoryAttestationIssuer(fail_with="offline")
        with pytest.raises(AttestationError):
            issuer.attest(_request())
        assert issuer.issued == {}


@pytest.fixture
def http_issuer():
    with patch('requests.Session') as mock_session:
        issuer = HttpAttestationIssuer(base_url="https://attest.test/", api_key="secret")
        issuer.session = mock_session.return_value
        yield issuer


class TestHttp:

    def test_attest(self, http_issuer):
        response = MagicMock()
        response.json.return_value = {"uid": "0xfeed"}
        http_issuer.session.post.return_value = response

        assert http_issuer.attest(_request()) == "0xfeed"
        args, kwargs = http_issuer.session.post.call_args
        assert args[0] == "https://attest.test/attestations"
        assert kwargs["json"]["recipient"] == "alice"

    def test_missing_uid(self, http_issuer):
        response = MagicMock()
        response.json.return_value = {"error": "schema unknown"}
        http_issuer.session.post.return_value = response

        with pytest.raises(AttestationError):
            http_issuer.attest(_request())

    def test_http_error(self, http_issuer):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("500")
        http_issuer.session.post.return_value = response

        with pytest.raises(AttestationError):
            http_issuer.attest(_request())

    def test_not_configured(self, monkeypatch):
        monkeypatch.delenv("ATTESTATION_API_URL", raising=False)
        with pytest.raises(AttestationError):
            HttpAttestationIssuer().attest(_request())

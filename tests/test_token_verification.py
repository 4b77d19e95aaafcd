"""Tests for public-key (compact JWS) verification.

Tests:
- Valid platform tokens accepted and their tenant claim extracted
- Tampered payloads, foreign keys and disallowed algorithms rejected
- Registered claims (exp, iat, iss, aud) and the tenant claim enforced
- Key set lookups by key id
"""

import json
import time

import httpx
import pytest
from jose import jwt

from addon_gateway.auth.models import (
    TOKEN_HEADER,
    Rejection,
    RejectionReason,
    SignatureScheme,
    SignedEnvelope,
    VerifiedIdentity,
)
from conftest import JWKS_URL, KEY_ID, _generate_rsa_pem, b64url, hmac_headers


def _verify(services, token, claimed_tenant_id=None):
    envelope = SignedEnvelope.from_headers(b"{}", {TOKEN_HEADER: token})
    return services.verifier.verify(envelope, claimed_tenant_id)


def _token_with_header(header: dict) -> str:
    now = int(time.time())
    claims = {"tenantId": "tenant-1", "iat": now, "exp": now + 300}
    return ".".join([b64url(json.dumps(header).encode()), b64url(json.dumps(claims).encode()), b64url(b"sig")])


class TestValidTokens:
    def test_valid_token_accepted(self, services, make_token):
        token = make_token(tenant_id="tenant-7")

        result = _verify(services, token)

        assert isinstance(result, VerifiedIdentity)
        assert result.tenant_id == "tenant-7"
        assert result.scheme == SignatureScheme.PUBLIC_KEY
        assert result.token == token
        assert result.claims["tenantId"] == "tenant-7"

    def test_matching_claimed_tenant_accepted(self, services, make_token):
        result = _verify(services, make_token(tenant_id="tenant-1"), "tenant-1")
        assert isinstance(result, VerifiedIdentity)

    def test_audience_list_accepted(self, services, make_token):
        result = _verify(services, make_token(aud=["other", "addon-gateway"]))
        assert isinstance(result, VerifiedIdentity)

    def test_token_takes_precedence_over_hmac_headers(self, services, make_token):
        headers = {**hmac_headers(b"{}", "unused"), TOKEN_HEADER: make_token()}

        result = services.verifier.verify(SignedEnvelope.from_headers(b"{}", headers), None)

        assert result.scheme == SignatureScheme.PUBLIC_KEY

    def test_no_store_lookup_needed(self, services, store, make_token):
        """Public-key verification never consults the credential store."""
        assert store.get("tenant-1") is None
        assert isinstance(_verify(services, make_token()), VerifiedIdentity)


class TestRejectedTokens:
    def test_tampered_payload_rejected(self, services, make_token):
        header, _, signature = make_token(tenant_id="tenant-1").split(".")
        now = int(time.time())
        forged_claims = {
            "tenantId": "tenant-2",
            "iss": "https://platform.test",
            "aud": "addon-gateway",
            "iat": now,
            "exp": now + 300,
        }
        forged = ".".join([header, b64url(json.dumps(forged_claims).encode()), signature])

        result = _verify(services, forged)

        assert isinstance(result, Rejection)
        assert result.reason == RejectionReason.INVALID_SIGNATURE

    def test_token_signed_by_foreign_key_rejected(self, services, make_token):
        foreign_private, _ = _generate_rsa_pem()

        result = _verify(services, make_token(private_pem=foreign_private))

        assert result.reason == RejectionReason.INVALID_SIGNATURE

    def test_disallowed_algorithm_rejected(self, services):
        now = int(time.time())
        token = jwt.encode(
            {"tenantId": "tenant-1", "iat": now, "exp": now + 300},
            "shared-secret",
            algorithm="HS256",
            headers={"kid": KEY_ID},
        )

        assert _verify(services, token).reason == RejectionReason.UNSUPPORTED_ALGORITHM

    def test_malformed_token_rejected(self, services):
        assert _verify(services, "not-a-token").reason == RejectionReason.MALFORMED_TOKEN
        assert _verify(services, "a..c").reason == RejectionReason.MALFORMED_TOKEN
        assert _verify(services, "!!!.e30.sig").reason == RejectionReason.MALFORMED_TOKEN

    def test_unknown_key_id_rejected(self, services, make_token):
        assert _verify(services, make_token(kid="rotated-away")).reason == RejectionReason.UNKNOWN_KEY_ID

    @pytest.mark.parametrize("kid", [["x"], {"a": 1}, 7, ""])
    def test_non_string_key_id_rejected(self, services, downstream, kid):
        token = _token_with_header({"alg": "RS256", "kid": kid})

        assert _verify(services, token).reason == RejectionReason.UNKNOWN_KEY_ID
        assert downstream.requests_to(JWKS_URL) == []

    @pytest.mark.parametrize("alg", [["RS256"], {"RS256": 1}, None])
    def test_non_string_algorithm_rejected(self, services, alg):
        token = _token_with_header({"alg": alg, "kid": KEY_ID})

        assert _verify(services, token).reason == RejectionReason.UNSUPPORTED_ALGORITHM

    def test_expired_token_rejected(self, services, make_token):
        now = int(time.time())
        token = make_token(iat=now - 600, exp=now - 120)

        assert _verify(services, token).reason == RejectionReason.TOKEN_EXPIRED

    def test_expiry_within_leeway_accepted(self, services, make_token):
        now = int(time.time())
        token = make_token(iat=now - 600, exp=now - 5)

        assert isinstance(_verify(services, token), VerifiedIdentity)

    def test_missing_exp_rejected(self, services, make_token):
        token = make_token(exp=None)
        assert _verify(services, token).reason == RejectionReason.INVALID_CLAIMS

    def test_future_iat_rejected(self, services, make_token):
        now = int(time.time())
        token = make_token(iat=now + 3600, exp=now + 7200)
        assert _verify(services, token).reason == RejectionReason.INVALID_CLAIMS

    def test_wrong_issuer_rejected(self, services, make_token):
        assert _verify(services, make_token(iss="https://evil.test")).reason == RejectionReason.INVALID_CLAIMS

    def test_wrong_audience_rejected(self, services, make_token):
        assert _verify(services, make_token(aud="someone-else")).reason == RejectionReason.INVALID_CLAIMS

    def test_missing_tenant_claim_rejected(self, services, make_token):
        token = make_token(tenantId=None)
        assert _verify(services, token).reason == RejectionReason.INVALID_CLAIMS

    def test_tenant_mismatch_rejected(self, services, make_token):
        result = _verify(services, make_token(tenant_id="tenant-1"), "tenant-2")
        assert result.reason == RejectionReason.TENANT_MISMATCH

    def test_key_set_outage_rejected(self, services, downstream, make_token):
        downstream.jwks_handler = lambda request: httpx.Response(503)

        assert _verify(services, make_token()).reason == RejectionReason.KEY_SET_UNAVAILABLE

    def test_key_set_fetched_from_configured_url(self, services, downstream, make_token):
        _verify(services, make_token())
        assert len(downstream.requests_to(JWKS_URL)) == 1

"""
Unit tests for session token resolution
"""
import time

from jose import jwt

from ainoc.core.auth import (
    LOGIN_REQUIRED_MESSAGE,
    SESSION_INVALID_MESSAGE,
    Authenticated,
    Unauthenticated,
    resolve_identity,
)


def _token(secret, **claims):
    payload = {"exp": int(time.time()) + 3600}
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")


class TestResolveIdentity:
    """Bearer token -> auth state"""

    def test_missing_token_requires_login(self):
        state = resolve_identity(None)

        assert isinstance(state, Unauthenticated)
        assert state.reason == LOGIN_REQUIRED_MESSAGE

    def test_valid_token_yields_identity(self, auth_secret):
        token = _token(auth_secret, id="u-42", name="ACME TEXTILES", email="buyer@acme.example")

        state = resolve_identity(token)

        assert isinstance(state, Authenticated)
        assert state.identity.id == "u-42"
        assert state.identity.email == "buyer@acme.example"
        assert state.identity.bill_to_party_code == "ACME TEXTILES"

    def test_sub_claim_is_accepted_as_id(self, auth_secret):
        token = _token(auth_secret, sub="u-7", name="ACME", email="a@acme.example")

        state = resolve_identity(token)

        assert isinstance(state, Authenticated)
        assert state.identity.id == "u-7"

    def test_wrong_signature_is_rejected(self, auth_secret):
        token = _token("some-other-secret", id="u-42", name="ACME", email="a@acme.example")

        state = resolve_identity(token)

        assert isinstance(state, Unauthenticated)
        assert state.reason == SESSION_INVALID_MESSAGE

    def test_expired_token_is_rejected(self, auth_secret):
        token = jwt.encode(
            {"id": "u-42", "name": "ACME", "email": "a@acme.example", "exp": int(time.time()) - 60},
            auth_secret,
            algorithm="HS256",
        )

        state = resolve_identity(token)

        assert isinstance(state, Unauthenticated)
        assert state.reason == SESSION_INVALID_MESSAGE

    def test_token_without_email_is_rejected(self, auth_secret):
        token = _token(auth_secret, id="u-42", name="ACME")

        state = resolve_identity(token)

        assert isinstance(state, Unauthenticated)
        assert state.reason == SESSION_INVALID_MESSAGE

    def test_unconfigured_secret_rejects_every_token(self, monkeypatch):
        from ainoc.core.config import settings
        monkeypatch.setattr(settings, "AUTH_SECRET", "")
        token = _token("anything", id="u-42", name="ACME", email="a@acme.example")

        state = resolve_identity(token)

        assert isinstance(state, Unauthenticated)
        assert state.reason == SESSION_INVALID_MESSAGE

"""Tests for webhook signature verification."""

import hashlib
import hmac

import pytest

from webhook_relay.errors import SignatureError
from webhook_relay.security import (
    compute_signature,
    validate_payload,
    verify_signature,
)

SECRET = "my-webhook-secret"
BODY = b'{"ref": "refs/heads/main"}'


def _sha256_header(body: bytes, secret: str = SECRET) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


class TestVerifySignature:
    """Test cases for verify_signature."""

    def test_valid_signature_returns_body(self):
        assert verify_signature(BODY, _sha256_header(BODY), SECRET) == BODY

    def test_github_documented_example(self):
        """The example from GitHub's webhook validation docs."""
        signature = "sha256=757107ea0eb2509fc211221cce984b8a37570b6d7586c22c46f4379c8b043e17"
        assert verify_signature(b"Hello, World!", signature, "It's a Secret to Everybody")

    def test_legacy_sha1_signature(self):
        digest = hmac.new(SECRET.encode("utf-8"), BODY, hashlib.sha1).hexdigest()
        assert verify_signature(BODY, f"sha1={digest}", SECRET) == BODY

    def test_sha512_signature(self):
        digest = hmac.new(SECRET.encode("utf-8"), BODY, hashlib.sha512).hexdigest()
        assert verify_signature(BODY, f"sha512={digest}", SECRET) == BODY

    def test_sha512_wrong_secret(self):
        with pytest.raises(SignatureError):
            verify_signature(BODY, compute_signature(BODY, "wrong", "sha512"), SECRET)

    def test_wrong_secret(self):
        with pytest.raises(SignatureError):
            verify_signature(BODY, _sha256_header(BODY, "wrong-secret"), SECRET)

    def test_modified_payload(self):
        signature = _sha256_header(BODY)
        with pytest.raises(SignatureError):
            verify_signature(b'{"ref": "refs/heads/develop"}', signature, SECRET)

    @pytest.mark.parametrize(
        "header",
        [
            None,
            "",
            "sha256",
            "sha256=",
            "abc123",
            "md5=d41d8cd98f00b204e9800998ecf8427e",
            "sha256=not-hex-at-all",
            "sha256=abcd",
        ],
    )
    def test_missing_or_malformed_header(self, header):
        with pytest.raises(SignatureError):
            verify_signature(BODY, header, SECRET)

    def test_uppercase_hex_is_accepted(self):
        algorithm, _, digest = _sha256_header(BODY).partition("=")
        assert verify_signature(BODY, f"{algorithm}={digest.upper()}", SECRET) == BODY

    def test_compute_signature_matches_hmac(self):
        assert compute_signature(BODY, SECRET) == _sha256_header(BODY)


class TestValidatePayload:
    """Test cases for request-level payload validation."""

    def test_json_body_is_returned(self):
        payload = validate_payload(
            BODY, "application/json", _sha256_header(BODY), None, SECRET
        )
        assert payload == BODY

    def test_content_type_parameters_are_ignored(self):
        payload = validate_payload(
            BODY, "application/json; charset=utf-8", _sha256_header(BODY), None, SECRET
        )
        assert payload == BODY

    def test_form_body_returns_payload_field(self):
        body = b"payload=%7B%22ref%22%3A+%22refs%2Fheads%2Fmain%22%7D"
        payload = validate_payload(
            body,
            "application/x-www-form-urlencoded",
            _sha256_header(body),
            None,
            SECRET,
        )
        assert payload == b'{"ref": "refs/heads/main"}'

    def test_sha256_header_preferred_over_sha1(self):
        bad_sha1 = "sha1=" + "0" * 40
        payload = validate_payload(
            BODY, "application/json", _sha256_header(BODY), bad_sha1, SECRET
        )
        assert payload == BODY

    def test_falls_back_to_sha1_header(self):
        sha1 = compute_signature(BODY, SECRET, "sha1")
        assert validate_payload(BODY, "application/json", None, sha1, SECRET) == BODY

    def test_no_signature_headers(self):
        with pytest.raises(SignatureError, match="missing signature"):
            validate_payload(BODY, "application/json", None, None, SECRET)

    @pytest.mark.parametrize("content_type", [None, "", "text/plain", "application/xml"])
    def test_unsupported_content_type(self, content_type):
        with pytest.raises(SignatureError, match="Content-Type"):
            validate_payload(BODY, content_type, _sha256_header(BODY), None, SECRET)

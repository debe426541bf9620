"""GitHub webhook signature verification.

GitHub signs each delivery with an HMAC of the raw request body keyed by the
webhook secret. The hex digest is sent as ``sha256=<hex>`` in the
``X-Hub-Signature-256`` header and, for older hooks, as ``sha1=<hex>`` in
``X-Hub-Signature``. ``sha512=<hex>`` values are accepted as well.
"""

import hashlib
import hmac
import logging
from typing import Optional
from urllib.parse import parse_qs

from webhook_relay.errors import SignatureError

logger = logging.getLogger(__name__)

HEADER_SIGNATURE_256 = "X-Hub-Signature-256"
HEADER_SIGNATURE = "X-Hub-Signature"
HEADER_EVENT = "X-GitHub-Event"
HEADER_DELIVERY = "X-GitHub-Delivery"

CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_FORM = "application/x-www-form-urlencoded"

DIGESTS = {
    "sha256": hashlib.sha256,
    "sha1": hashlib.sha1,
    "sha512": hashlib.sha512,
}


def compute_signature(body: bytes, secret: str, algorithm: str = "sha256") -> str:
    """Return the ``<algo>=<hex>`` header value GitHub would send for ``body``."""
    digest = hmac.new(secret.encode("utf-8"), body, DIGESTS[algorithm]).hexdigest()
    return f"{algorithm}={digest}"


def verify_signature(
    body: bytes, signature_header: Optional[str], secret: str
) -> bytes:
    """Verify a webhook signature and return the body it covers.

    Args:
        body: Raw request body, exactly as received.
        signature_header: Value of the signature header (``sha256=<hex>``).
        secret: Shared webhook secret configured on GitHub.

    Returns:
        The raw body bytes.

    Raises:
        SignatureError: If the header is missing, malformed or does not match.
    """
    if not signature_header:
        raise SignatureError("missing signature")

    algorithm, sep, received = signature_header.partition("=")
    if not sep or not received:
        raise SignatureError("malformed signature header")

    digestmod = DIGESTS.get(algorithm)
    if digestmod is None:
        raise SignatureError(f"unsupported signature algorithm: {algorithm}")

    try:
        received_digest = bytes.fromhex(received)
    except ValueError as e:
        raise SignatureError("signature is not hex encoded") from e

    expected_digest = hmac.new(secret.encode("utf-8"), body, digestmod).digest()

    # Constant-time comparison
    if not hmac.compare_digest(received_digest, expected_digest):
        raise SignatureError("payload signature check failed")

    return body


def validate_payload(
    body: bytes,
    content_type: Optional[str],
    signature_256: Optional[str],
    signature_1: Optional[str],
    secret: str,
) -> bytes:
    """Authenticate a webhook delivery and return its payload bytes.

    The SHA-256 header is preferred; the legacy SHA-1 header is used only when
    it is the sole signature present. Form-encoded deliveries carry the JSON
    document in the ``payload`` field, but the signature always covers the raw
    body.

    Raises:
        SignatureError: On a bad signature or an unsupported content type.
    """
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type not in (CONTENT_TYPE_JSON, CONTENT_TYPE_FORM):
        raise SignatureError(f"webhook request has unsupported Content-Type {content_type!r}")

    verify_signature(body, signature_256 or signature_1, secret)

    if media_type == CONTENT_TYPE_FORM:
        form = parse_qs(body.decode("utf-8", errors="replace"))
        return form.get("payload", [""])[0].encode("utf-8")
    return body

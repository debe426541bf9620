"""Push event extraction from authenticated GitHub payloads.

Only the fields the relay routes on are read; everything else in the
delivery is ignored by the schema.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from webhook_relay.errors import PayloadError

logger = logging.getLogger(__name__)


# -----------------------------------
# Payload schema
# -----------------------------------


class _PayloadModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Pusher(_PayloadModel):
    name: Optional[str] = ""
    email: Optional[str] = ""


class Repository(_PayloadModel):
    full_name: Optional[str] = ""


class GitHubPushPayload(_PayloadModel):
    """The subset of a GitHub ``push`` delivery the relay reads."""

    ref: Optional[str] = ""
    after: Optional[str] = ""
    pusher: Optional[Pusher] = None
    repository: Optional[Repository] = None


# -----------------------------------
# Event projection
# -----------------------------------


@dataclass(frozen=True)
class PushEvent:
    """Routing fields of a push; ``ref`` and ``after`` are for logging only."""

    pusher_name: str
    pusher_email: str
    repository_full_name: str
    ref: str = ""
    after: str = ""

    @property
    def routing_key(self) -> str:
        return self.repository_full_name

    @property
    def is_valid(self) -> bool:
        return bool(self.pusher_name and self.pusher_email and self.repository_full_name)


def parse_push_payload(raw: bytes) -> GitHubPushPayload:
    """Parse raw webhook bytes into the push schema.

    Raises:
        PayloadError: If the document is not valid JSON or does not fit the schema.
    """
    try:
        return GitHubPushPayload.model_validate_json(raw)
    except ValidationError as e:
        raise PayloadError(f"payload does not match the push schema: {e}") from e


def extract_push_event(raw: bytes) -> Optional[PushEvent]:
    """Project a verified payload onto a PushEvent.

    Args:
        raw: Authenticated payload bytes.

    Returns:
        The PushEvent, or None when the delivery is not a push (any of pusher
        name, pusher email or repository full name is empty).

    Raises:
        PayloadError: If the payload is structurally malformed.
    """
    payload = parse_push_payload(raw)
    pusher = payload.pusher or Pusher()
    repository = payload.repository or Repository()
    event = PushEvent(
        pusher_name=pusher.name or "",
        pusher_email=pusher.email or "",
        repository_full_name=repository.full_name or "",
        ref=payload.ref or "",
        after=payload.after or "",
    )
    if not event.is_valid:
        return None
    return event

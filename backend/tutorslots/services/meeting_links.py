"""Meeting link generation for confirmed lessons."""

import secrets
import string

from ..core.config import settings

_ALPHABET = string.ascii_lowercase


def _chunk(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_meeting_link() -> str:
    """Return a fresh video-room URL in the ``abc-defg-hij`` shape."""
    return f"{settings.meeting_link_base_url}{_chunk(3)}-{_chunk(4)}-{_chunk(3)}"

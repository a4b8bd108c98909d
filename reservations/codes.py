"""Human-readable booking codes."""

from __future__ import annotations

import secrets
import string
from typing import Optional, Protocol

from ulid import ULID

from reservations.exceptions import BookingCodeError

CODE_LENGTH = 64
ULID_LENGTH = 26
_ALPHABET = string.ascii_letters + string.digits


class BookingCodeGenerator(Protocol):
    def __call__(self, prefix: Optional[str] = None, suffix: Optional[str] = None) -> str: ...


def random_booking_code(prefix: Optional[str] = None, suffix: Optional[str] = None) -> str:
    """Build a 64-char code: prefix + ULID + random padding + suffix, upper-cased."""
    prefix = prefix or ""
    suffix = suffix or ""

    missing = CODE_LENGTH - len(prefix + suffix)
    if missing <= ULID_LENGTH:
        raise BookingCodeError()

    padding = "".join(secrets.choice(_ALPHABET) for _ in range(missing - ULID_LENGTH))
    return f"{prefix}{ULID()}{padding}{suffix}".upper()

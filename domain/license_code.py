"""
Domain: License activation codes and claim tokens.

Canonical code format: XXXX-XXXX-XXXX-XXXX (16 uppercase alphanumerics in
groups of 4).

`normalize_license_code` is the keystroke formatter used by the code-entry
flow. It is total over every string, performs no existence check, and is
idempotent: normalize(normalize(x)) == normalize(x).

Generation uses an alphabet without ambiguous characters (no 0/O, no 1/I).
This module is pure: no I/O, no database.
"""

from __future__ import annotations

import re
import secrets

LICENSE_CODE_SEGMENTS: int = 4
LICENSE_CODE_SEGMENT_LENGTH: int = 4
LICENSE_CODE_RAW_LENGTH: int = LICENSE_CODE_SEGMENTS * LICENSE_CODE_SEGMENT_LENGTH
LICENSE_CODE_SEPARATOR: str = "-"

# Shortest partial code worth sending to the store.
MIN_SUBMITTED_CODE_LENGTH: int = 4

LICENSE_CODE_ALPHABET: str = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

CLAIM_TOKEN_BYTES: int = 32

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")
_GROUPED_CODE = re.compile(r"^[A-HJ-NP-Z2-9]{4}(-[A-HJ-NP-Z2-9]{4}){3}$")
_UNGROUPED_CODE = re.compile(r"^[A-HJ-NP-Z2-9]{16}$")
_CLAIM_TOKEN = re.compile(r"^[a-f0-9]{64}$")


def normalize_license_code(raw_input: str) -> str:
    """
    Turn arbitrary keystrokes into the canonical code representation.

    Steps:
    1. Strip every character that is not [A-Za-z0-9].
    2. Upper-case the remainder.
    3. Truncate to 16 characters.
    4. Re-insert a separator every 4 characters (last group may be shorter).

    Examples:
        normalize_license_code("ab12-cd34-EF")   -> "AB12-CD34-EF"
        normalize_license_code("!!ab##12cd34")   -> "AB12-CD34"
        normalize_license_code("")               -> ""
    """

    kept = _NON_ALNUM.sub("", raw_input).upper()[:LICENSE_CODE_RAW_LENGTH]
    groups = [
        kept[i : i + LICENSE_CODE_SEGMENT_LENGTH]
        for i in range(0, len(kept), LICENSE_CODE_SEGMENT_LENGTH)
    ]
    return LICENSE_CODE_SEPARATOR.join(groups)


def prepare_code_for_submission(raw_input: str) -> str:
    """Final pass applied once before a code is submitted (trim, upper-case, normalize)."""

    return normalize_license_code(raw_input.strip().upper())


def code_character_count(code: str) -> int:
    """Number of significant characters in a (possibly grouped) code."""

    return len(code.replace(LICENSE_CODE_SEPARATOR, ""))


def generate_license_code() -> str:
    """Generate a random code in XXXX-XXXX-XXXX-XXXX format."""

    segments = [
        "".join(secrets.choice(LICENSE_CODE_ALPHABET) for _ in range(LICENSE_CODE_SEGMENT_LENGTH))
        for _ in range(LICENSE_CODE_SEGMENTS)
    ]
    return LICENSE_CODE_SEPARATOR.join(segments)


def generate_claim_token() -> str:
    """Generate a single-use claim token (64 lowercase hex characters)."""

    return secrets.token_hex(CLAIM_TOKEN_BYTES)


def is_valid_license_code_format(code: str) -> bool:
    """
    Check a code against the issuance alphabet.

    Accepts both XXXX-XXXX-XXXX-XXXX and the ungrouped 16 character form.
    """

    if not isinstance(code, str) or not code:
        return False
    candidate = code.strip().upper()
    return bool(_GROUPED_CODE.match(candidate) or _UNGROUPED_CODE.match(candidate))


def is_valid_claim_token(token: str) -> bool:
    if not isinstance(token, str) or not token:
        return False
    return bool(_CLAIM_TOKEN.match(token))


__all__ = [
    "LICENSE_CODE_ALPHABET",
    "LICENSE_CODE_RAW_LENGTH",
    "MIN_SUBMITTED_CODE_LENGTH",
    "normalize_license_code",
    "prepare_code_for_submission",
    "code_character_count",
    "generate_license_code",
    "generate_claim_token",
    "is_valid_license_code_format",
    "is_valid_claim_token",
]

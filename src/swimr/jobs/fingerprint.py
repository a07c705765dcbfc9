"""Fast, non-cryptographic text fingerprints used as cache keys."""

import struct
from typing import Optional

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return sign + "".join(reversed(digits))


def quick_hash(text: str) -> str:
    """Order-sensitive 32-bit rolling hash (h * 31 + c) over UTF-16 code units.

    The signed 32-bit result is rendered in base 36, the same digest a
    browser computes with `((h << 5) - h + s.charCodeAt(i)) | 0`.

    Args:
        text: Text to fingerprint.

    Returns:
        Base-36 digest string.
    """
    data = text.encode("utf-16-le", "surrogatepass")
    h = 0
    for (unit,) in struct.iter_unpack("<H", data):
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(h)


def context_hash(job_context: Optional[str]) -> str:
    """Fingerprint a job context; a missing context hashes like an empty one."""
    return quick_hash(job_context or "")


def make_cache_key(
    candidate_id: str,
    role_id: Optional[str],
    cv_text: str,
    job_context: Optional[str],
) -> str:
    """Composite dedup key for an analysis attempt."""
    return f"{candidate_id}|{role_id or 'none'}|{quick_hash(cv_text)}|{context_hash(job_context)}"

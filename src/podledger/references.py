"""Human-readable references for packages and PODs."""

from __future__ import annotations

import re
import secrets
import string
from datetime import datetime

from podledger.enums import PodSequenceScope

PACKAGE_REFERENCE_RE = re.compile(r"^PKG-\d{8}-[A-Z0-9]{4}$")
POD_REFERENCE_RE = re.compile(r"^POD-\d{4}-\d{4,}$")

_ALPHABET = string.ascii_uppercase + string.digits


def generate_package_reference(now: datetime) -> str:
    """``PKG-YYYYMMDD-XXXX`` with four random uppercase alphanumerics."""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(4))
    return f"PKG-{now:%Y%m%d}-{suffix}"


def pod_sequence_key(scope: PodSequenceScope, now: datetime) -> str:
    """Counter key the next POD sequence number is drawn from.

    ``global`` keeps one counter forever, so the number does not restart
    when the year in the reference changes. ``yearly`` restarts at 1.
    """
    if scope == PodSequenceScope.YEARLY:
        return str(now.year)
    return PodSequenceScope.GLOBAL.value


def format_pod_reference(year: int, sequence: int) -> str:
    """``POD-YYYY-NNNN``; the sequence widens past 9999 instead of wrapping."""
    return f"POD-{year:04d}-{sequence:04d}"

"""
Canonical encoding and hashing of certificate fields.

The encoding is a compact JSON object whose keys always appear in the order
studentId, studentName, degree, institution, grade, issueDate, with
non-ASCII characters written literally and the result UTF-8 encoded. It is
byte-identical to JSON.stringify of the same fixed-order object, so digests
computed by a JavaScript client agree with ours.
"""

import hashlib
import json
from collections import OrderedDict

from .errors import InvalidFieldError
from .models import FIELD_KEYS, CertificateFields


def canonicalize(fields: CertificateFields) -> bytes:
    ordered = OrderedDict()
    for attr, wire in FIELD_KEYS:
        value = getattr(fields, attr)
        if not isinstance(value, str):
            raise InvalidFieldError(f"{wire} must be a string")
        if not value:
            raise InvalidFieldError(f"{wire} must not be empty", missing=[wire])
        ordered[wire] = value

    text = json.dumps(ordered, separators=(",", ":"), ensure_ascii=False)
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise InvalidFieldError(f"certificate fields are not valid text: {exc.reason}") from exc


def hash_fields(fields: CertificateFields) -> str:
    return hashlib.sha256(canonicalize(fields)).hexdigest()

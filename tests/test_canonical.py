"""
Tests for certchain/canonical.py.
"""

import hashlib
from dataclasses import replace

import pytest

from certchain.canonical import canonicalize, hash_fields
from certchain.errors import InvalidFieldError, ValidationError
from certchain.models import FIELD_KEYS, CertificateFields

EXPECTED_BYTES = (
    b'{"studentId":"S1","studentName":"Ana","degree":"BSc CS",'
    b'"institution":"Tech U","grade":"A","issueDate":"2024-01-01"}'
)


class TestCanonicalize:
    def test_fixed_order_compact_json(self, sample_fields):
        assert canonicalize(CertificateFields.from_mapping(sample_fields)) == EXPECTED_BYTES

    def test_call_site_order_does_not_matter(self, sample_fields):
        reversed_fields = dict(reversed(list(sample_fields.items())))
        assert canonicalize(CertificateFields.from_mapping(reversed_fields)) == EXPECTED_BYTES

    def test_snake_case_keys_accepted(self):
        fields = CertificateFields.from_mapping({
            "issue_date": "2024-01-01",
            "grade": "A",
            "institution": "Tech U",
            "degree": "BSc CS",
            "student_name": "Ana",
            "student_id": "S1",
        })
        assert canonicalize(fields) == EXPECTED_BYTES

    def test_unknown_keys_ignored(self, sample_fields):
        sample_fields["certificateId"] = "CERT-1"
        assert canonicalize(CertificateFields.from_mapping(sample_fields)) == EXPECTED_BYTES

    def test_non_ascii_written_literally(self, sample_fields):
        sample_fields["studentName"] = "José Müller"
        data = canonicalize(CertificateFields.from_mapping(sample_fields))
        assert "José Müller".encode("utf-8") in data
        assert b"\\u" not in data

    def test_quotes_are_escaped(self, sample_fields):
        sample_fields["degree"] = 'BSc "Hons"'
        data = canonicalize(CertificateFields.from_mapping(sample_fields))
        assert b'"degree":"BSc \\"Hons\\""' in data

    def test_empty_field_rejected(self, sample_fields):
        sample_fields["grade"] = ""
        with pytest.raises(InvalidFieldError) as excinfo:
            canonicalize(CertificateFields.from_mapping(sample_fields))
        assert excinfo.value.missing == ["grade"]

    def test_whitespace_is_a_value(self, sample_fields):
        sample_fields["grade"] = " "
        data = canonicalize(CertificateFields.from_mapping(sample_fields))
        assert b'"grade":" "' in data

    def test_unpaired_surrogate_rejected(self, sample_fields):
        sample_fields["studentName"] = "Ana \ud800"
        with pytest.raises(InvalidFieldError):
            canonicalize(CertificateFields.from_mapping(sample_fields))

    def test_non_string_rejected(self, sample_fields):
        sample_fields["grade"] = 5
        with pytest.raises(InvalidFieldError):
            canonicalize(CertificateFields.from_mapping(sample_fields))

    def test_invalid_field_is_a_validation_error(self):
        assert issubclass(InvalidFieldError, ValidationError)


class TestHashFields:
    def test_sha256_of_canonical_bytes(self, sample_fields):
        digest = hash_fields(CertificateFields.from_mapping(sample_fields))
        assert digest == hashlib.sha256(EXPECTED_BYTES).hexdigest()
        assert len(digest) == 64
        assert digest == digest.lower()

    def test_deterministic(self, sample_fields):
        fields = CertificateFields.from_mapping(sample_fields)
        assert hash_fields(fields) == hash_fields(fields)

    @pytest.mark.parametrize("attr", [attr for attr, _ in FIELD_KEYS])
    def test_single_field_change_changes_hash(self, sample_fields, attr):
        fields = CertificateFields.from_mapping(sample_fields)
        mutated = replace(fields, **{attr: getattr(fields, attr) + "x"})
        assert hash_fields(mutated) != hash_fields(fields)

    def test_field_values_do_not_bleed_across_boundaries(self, sample_fields):
        first = dict(sample_fields, studentName="Ana B", degree="Sc CS")
        second = dict(sample_fields, studentName="Ana", degree="BSc CS")
        assert hash_fields(CertificateFields.from_mapping(first)) != \
            hash_fields(CertificateFields.from_mapping(second))


class TestCertificateFields:
    def test_missing_lists_wire_names(self):
        fields = CertificateFields.from_mapping({"studentId": "S1", "grade": None})
        assert fields.missing() == ["studentName", "degree", "institution", "grade", "issueDate"]

    def test_to_dict_round_trips_wire_keys(self, sample_fields):
        assert CertificateFields.from_mapping(sample_fields).to_dict() == sample_fields

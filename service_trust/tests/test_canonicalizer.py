"""
Unit tests for document canonicalization.
"""

import hashlib
import json
from datetime import datetime, timedelta, timezone

import pytest

from service_trust.app.canonical import Canonicalizer, DocumentInput, normalize_timestamp
from service_trust.app.canonical.canonicalizer import build_v1
from shared.errors import MalformedDocumentError, UnsupportedCanonicalVersionError
from shared.test_helpers import DocumentFactory


@pytest.fixture
def canonicalizer():
    return Canonicalizer()


def _hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class TestCanonicalizer:
    """Test cases for Canonicalizer."""

    def test_exact_byte_layout(self, canonicalizer):
        """Field order, compact separators and attachment order are fixed."""
        canonical = canonicalizer.canonicalize(DocumentFactory.note())
        xray_hash = _hash(b"\x89PNG xray")
        labs_hash = _hash(b"%PDF-1.7 labs")

        expected = (
            '{"content":"Paciente estable. Continuar tratamiento.",'
            '"metadata":{"appointment_id":"apt-9","created_at":"2024-05-01T14:30:00Z",'
            '"doctor_id":"doc-42","document_type":"clinical_note","note_id":"note-001",'
            '"patient_id":"pat-7","signed_at":"2024-05-01T15:00:00Z",'
            '"signed_with":"kms:RSASSA_PSS_SHA_256","canonical_version":"v1"},'
            '"attachments":['
            f'{{"sha256_hash":"{xray_hash}","filename":"xray.png","key":"att-a"}},'
            f'{{"sha256_hash":"{labs_hash}","filename":"labs.pdf","key":"att-b"}}'
            "]}"
        ).encode("utf-8")
        assert canonical == expected

    def test_attachment_order_does_not_matter(self, canonicalizer):
        note = DocumentFactory.note()
        reversed_note = DocumentFactory.note(attachments=list(reversed(note["attachments"])))

        assert canonicalizer.canonicalize(note) == canonicalizer.canonicalize(reversed_note)

    def test_attachments_with_same_key_sorted_by_hash(self, canonicalizer):
        attachments = [
            {"key": "att", "filename": "b.txt", "content": b"second"},
            {"key": "att", "filename": "a.txt", "content": b"first"},
        ]
        record = canonicalizer.build(DocumentFactory.note(attachments=attachments))

        hashes = [item.sha256_hash for item in record.attachments]
        assert hashes == sorted(hashes)

    def test_timezone_offsets_normalize_to_utc(self, canonicalizer):
        """The same instant in different offsets yields identical bytes."""
        mexico_city = timezone(timedelta(hours=-6))
        shifted = DocumentFactory.note(
            created_at=datetime(2024, 5, 1, 8, 30, 0, tzinfo=mexico_city),
            signed_at="2024-05-01T17:00:00+02:00",
        )

        assert canonicalizer.canonicalize(shifted) == canonicalizer.canonicalize(DocumentFactory.note())

    def test_sub_second_precision_is_truncated(self, canonicalizer):
        precise = DocumentFactory.note(created_at=datetime(2024, 5, 1, 14, 30, 0, 999999, tzinfo=timezone.utc))

        assert canonicalizer.canonicalize(precise) == canonicalizer.canonicalize(DocumentFactory.note())

    def test_naive_timestamp_rejected(self, canonicalizer):
        with pytest.raises(MalformedDocumentError) as exc_info:
            canonicalizer.canonicalize(DocumentFactory.note(signed_at=datetime(2024, 5, 1, 15, 0, 0)))

        assert exc_info.value.details == {"field": "signed_at"}

    def test_unicode_is_nfc_normalized_and_not_escaped(self, canonicalizer):
        decomposed = DocumentFactory.note(
            content="Evolucio\u0301n favorable",
            attachments=[{"key": "att-a", "filename": "radiografi\u0301a.png", "content": b"img"}],
        )
        composed = DocumentFactory.note(
            content="Evolución favorable",
            attachments=[{"key": "att-a", "filename": "radiografía.png", "content": b"img"}],
        )

        canonical = canonicalizer.canonicalize(decomposed)

        assert canonical == canonicalizer.canonicalize(composed)
        assert "Evolución favorable".encode("utf-8") in canonical
        assert b"\\u" not in canonical

    def test_identifiers_are_nfc_normalized(self, canonicalizer):
        """Metadata and attachment keys normalize like content does."""
        decomposed = DocumentFactory.note(
            doctor_id="dr-nun\u0303ez",
            patient_id="pat-jose\u0301",
            document_type="evolucio\u0301n",
            signed_with="kms:firma-u\u0301nica",
            attachments=[{"key": "adjunto-a\u0301", "filename": "labs.pdf", "content": b"lab"}],
        )
        composed = DocumentFactory.note(
            doctor_id="dr-nu\u00f1ez",
            patient_id="pat-jos\u00e9",
            document_type="evoluci\u00f3n",
            signed_with="kms:firma-\u00fanica",
            attachments=[{"key": "adjunto-\u00e1", "filename": "labs.pdf", "content": b"lab"}],
        )

        canonical = canonicalizer.build(decomposed)

        assert canonicalizer.canonicalize(decomposed) == canonicalizer.canonicalize(composed)
        assert canonical.metadata.doctor_id == "dr-nu\u00f1ez"
        assert canonical.attachments[0].key == "adjunto-\u00e1"

    def test_stored_hash_equals_content_hash(self, canonicalizer):
        """Re-verification can use stored hashes instead of attachment bytes."""
        stored = DocumentFactory.note(
            attachments=[
                {"key": "att-b", "filename": "labs.pdf", "sha256_hash": _hash(b"%PDF-1.7 labs").upper()},
                {"key": "att-a", "filename": "xray.png", "sha256_hash": _hash(b"\x89PNG xray")},
            ]
        )

        assert canonicalizer.canonicalize(stored) == canonicalizer.canonicalize(DocumentFactory.note())

    def test_hash_disagreeing_with_content_rejected(self, canonicalizer):
        note = DocumentFactory.note(
            attachments=[{"key": "att-a", "filename": "x.png", "content": b"img", "sha256_hash": _hash(b"other")}]
        )

        with pytest.raises(MalformedDocumentError):
            canonicalizer.canonicalize(note)

    def test_missing_appointment_serializes_as_null(self, canonicalizer):
        canonical = canonicalizer.canonicalize(DocumentFactory.note(appointment_id=None, attachments=[]))

        parsed = json.loads(canonical)
        assert parsed["metadata"]["appointment_id"] is None
        assert parsed["attachments"] == []

    def test_content_change_changes_bytes(self, canonicalizer):
        original = canonicalizer.canonicalize(DocumentFactory.note())
        edited = canonicalizer.canonicalize(DocumentFactory.note(content="Paciente estable. Continuar tratamiento!"))

        assert original != edited

    def test_unknown_version_rejected(self, canonicalizer):
        with pytest.raises(UnsupportedCanonicalVersionError):
            canonicalizer.canonicalize(DocumentFactory.note(), version="v2")

        with pytest.raises(UnsupportedCanonicalVersionError):
            canonicalizer.canonicalize(DocumentFactory.note(canonical_version="v9"))

    def test_registered_versions_are_selectable(self):
        def build_v2(document):
            return build_v1(document.model_copy(update={"content": document.content.upper()}))

        canonicalizer = Canonicalizer({"v1": build_v1, "v2": build_v2})

        assert canonicalizer.supports("v2")
        assert b"PACIENTE ESTABLE" in canonicalizer.canonicalize(DocumentFactory.note(), version="v2")

    def test_model_input_accepted(self, canonicalizer):
        document = DocumentInput.model_validate(DocumentFactory.note())

        assert canonicalizer.canonicalize(document) == canonicalizer.canonicalize(DocumentFactory.note())

    @pytest.mark.parametrize("missing", ["note_id", "doctor_id", "created_at", "content"])
    def test_missing_field_rejected(self, canonicalizer, missing):
        note = DocumentFactory.note()
        del note[missing]

        with pytest.raises(MalformedDocumentError):
            canonicalizer.canonicalize(note)

    def test_attachment_without_content_or_hash_rejected(self, canonicalizer):
        note = DocumentFactory.note(attachments=[{"key": "att-a", "filename": "x.png"}])

        with pytest.raises(MalformedDocumentError):
            canonicalizer.canonicalize(note)


def test_normalize_timestamp():
    value = datetime(2024, 12, 31, 23, 59, 59, 500000, tzinfo=timezone(timedelta(hours=-5)))

    assert normalize_timestamp(value, "created_at") == "2025-01-01T04:59:59Z"

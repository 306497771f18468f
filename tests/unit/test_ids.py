# ABOUTME: Unit tests for manifest ID allocation and filename sanitizing.
# ABOUTME: Validates per-prefix sequences, reserved IDs, and safe output names.

import re

import pytest

from folio.model.ids import IdAllocator, new_identifier, sanitize_filename


class TestIdAllocator:
    """Tests for IdAllocator."""

    def test_sequences_are_zero_padded(self) -> None:
        """IDs count from one with four digits."""
        ids = IdAllocator()
        assert ids.next("i") == "i-0001"
        assert ids.next("i") == "i-0002"

    def test_prefixes_count_independently(self) -> None:
        """Each prefix has its own counter."""
        ids = IdAllocator()
        ids.next("i")
        ids.next("i")
        assert ids.next("p") == "p-0001"
        assert ids.next("s") == "s-0001"

    def test_reserved_ids_do_not_consume_sequence(self) -> None:
        """Reserving a fixed ID leaves the counters alone."""
        ids = IdAllocator()
        assert ids.reserve("cover") == "cover"
        assert ids.next("i") == "i-0001"

    def test_duplicate_reservation_rejected(self) -> None:
        """The same ID is never handed out twice."""
        ids = IdAllocator()
        ids.reserve("cover")
        with pytest.raises(ValueError, match="cover"):
            ids.reserve("cover")

    def test_reserving_a_sequence_id_then_allocating_it_fails(self) -> None:
        """A reserved ID that collides with a sequence ID is caught."""
        ids = IdAllocator()
        ids.reserve("p-0001")
        with pytest.raises(ValueError):
            ids.next("p")

    def test_custom_width(self) -> None:
        """Width controls the zero padding."""
        assert IdAllocator(width=2).next("x") == "x-01"


class TestNewIdentifier:
    """Tests for new_identifier."""

    def test_is_uuid_urn(self) -> None:
        """Generated identifiers are urn:uuid URNs."""
        assert re.fullmatch(r"urn:uuid:[0-9a-f-]{36}", new_identifier())

    def test_is_random(self) -> None:
        """Two calls give different identifiers."""
        assert new_identifier() != new_identifier()


class TestSanitizeFilename:
    """Tests for sanitize_filename."""

    def test_plain_title_unchanged(self) -> None:
        """Ordinary titles pass through."""
        assert sanitize_filename("Sample") == "Sample"

    def test_separators_replaced(self) -> None:
        """Path separators cannot escape the output directory."""
        assert sanitize_filename("a/b\\c") == "a_b_c"

    def test_reserved_characters_replaced(self) -> None:
        """Characters invalid on common filesystems become underscores."""
        assert sanitize_filename('What? "Yes": <no>') == "What_ _Yes__ _no_"

    def test_whitespace_collapsed(self) -> None:
        """Runs of whitespace become one space and ends are trimmed."""
        assert sanitize_filename("  Two   words\t") == "Two words"

    def test_unicode_kept(self) -> None:
        """Non-ASCII titles are kept."""
        assert sanitize_filename("吾輩は猫である") == "吾輩は猫である"

    def test_empty_falls_back(self) -> None:
        """Names that sanitize to nothing become `book`."""
        assert sanitize_filename("...") == "book"
        assert sanitize_filename("   ") == "book"

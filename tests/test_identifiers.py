"""Tests for identifier formatting and parsing."""

from datetime import UTC, datetime

from services.identifiers import IdentifierKind, format_identifier, parse_sequence, partition_key

MAY_10 = datetime(2025, 5, 10, 14, 30, tzinfo=UTC)


class TestFormatIdentifier:
    def test_service_request_number(self):
        assert format_identifier(IdentifierKind.SERVICE_REQUEST, MAY_10, 1) == "SR-2505-0001"

    def test_rendition_folio(self):
        assert format_identifier(IdentifierKind.RENDITION, MAY_10, 7) == "RND-250510-007"

    def test_sequence_wider_than_padding_is_kept(self):
        assert format_identifier(IdentifierKind.RENDITION, MAY_10, 1234) == "RND-250510-1234"


class TestPartitionKey:
    def test_requests_partition_by_month(self):
        assert partition_key(IdentifierKind.SERVICE_REQUEST, MAY_10) == "2505"

    def test_renditions_partition_by_day(self):
        assert partition_key(IdentifierKind.RENDITION, MAY_10) == "250510"


class TestParseSequence:
    def test_parses_trailing_number(self):
        assert parse_sequence("SR-2505-0042") == 42
        assert parse_sequence("RND-250510-003") == 3

    def test_missing_identifier(self):
        assert parse_sequence(None) is None
        assert parse_sequence("") is None

    def test_non_numeric_tail(self):
        assert parse_sequence("SR-2505-XYZ") is None

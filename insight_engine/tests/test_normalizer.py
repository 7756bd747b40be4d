"""
Record Normalizer Test Module

Covers per-source field mapping, default filling, list splitting for flat
exports, and per-record exclusion with the diagnostic report.
"""

from datetime import date, datetime, timezone

import numpy as np
import pytest

from insight_engine.core.exceptions import ValidationError
from insight_engine.models import RawRecord, SourceType
from insight_engine.services.normalizer import (
    REASON_NO_CONTENT,
    REASON_NOT_A_MAPPING,
    normalize_batch,
    normalize_record,
    parse_timestamp,
    resolve_source,
)


# =============================================================================
# Helper Functions
# =============================================================================


class TestResolveSource:
    """Tests for source tag resolution."""

    def test_known_tag(self) -> None:
        assert resolve_source("journal") == SourceType.JOURNAL

    def test_tag_is_case_insensitive(self) -> None:
        assert resolve_source(" DreamState_Session ") == SourceType.DREAMSTATE_SESSION

    @pytest.mark.parametrize("tag", [None, "", "slack"])
    def test_unknown_or_missing_tag_is_generic(self, tag) -> None:
        assert resolve_source(tag) == SourceType.GENERIC


class TestParseTimestamp:
    """Tests for timestamp parsing."""

    def test_iso_string_with_zone(self) -> None:
        parsed = parse_timestamp("2026-09-30T14:00:00Z")
        assert parsed == datetime(2026, 9, 30, 14, 0, tzinfo=timezone.utc)

    def test_naive_datetime_assumed_utc(self) -> None:
        parsed = parse_timestamp(datetime(2026, 9, 30, 14, 0))
        assert parsed.tzinfo is not None
        assert parsed.utcoffset().total_seconds() == 0

    def test_epoch_seconds(self) -> None:
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_plain_date_is_midnight_utc(self) -> None:
        assert parse_timestamp(date(2026, 9, 28)) == datetime(2026, 9, 28, tzinfo=timezone.utc)

    def test_date_column_is_not_replaced_by_as_of(self, as_of) -> None:
        obs = normalize_record(
            {"title": "Release notes", "created_at": date(2026, 9, 28)}, "journal", 0, as_of
        )
        assert obs.timestamp == datetime(2026, 9, 28, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "not a date", True, np.nan])
    def test_unparseable_values_return_none(self, value) -> None:
        assert parse_timestamp(value) is None


# =============================================================================
# Single Record Normalization
# =============================================================================


class TestNormalizeRecord:
    """Tests for normalize_record."""

    def test_conversation_record(self, conversation_record, as_of) -> None:
        obs = normalize_record(conversation_record.data, "conversation", 0, as_of)

        assert obs.id == "conv-001"
        assert obs.source == SourceType.CONVERSATION
        assert obs.timestamp == datetime(2026, 9, 30, 14, 0, tzinfo=timezone.utc)
        assert "Payment gateway integration" in obs.text
        assert "TypeScript compilation errors" in obs.text
        assert obs.metrics["efficiency"] == pytest.approx(87.3)
        assert obs.metrics["userSatisfaction"] == 9.0
        assert obs.challenges == ["TypeScript compilation errors", "API authentication issues"]

    def test_missing_timestamp_defaults_to_as_of(self, as_of) -> None:
        obs = normalize_record({"content": "Plan the next release"}, "journal", 4, as_of)
        assert obs.timestamp == as_of

    def test_missing_id_defaults_to_source_and_index(self, as_of) -> None:
        obs = normalize_record({"content": "Plan the next release"}, "journal", 4, as_of)
        assert obs.id == "journal-4"

    def test_timestamp_without_text_is_valid(self, as_of) -> None:
        obs = normalize_record({"created_at": "2026-09-01T00:00:00Z"}, "journal", 0, as_of)
        assert obs.text == ""

    def test_no_timestamp_and_no_text_is_rejected(self, as_of) -> None:
        with pytest.raises(ValidationError) as exc_info:
            normalize_record({"id": "empty", "confidence": 0.9}, "journal", 0, as_of)

        assert exc_info.value.reason == REASON_NO_CONTENT
        assert exc_info.value.record_id == "empty"
        assert exc_info.value.source == "journal"

    def test_non_mapping_payload_is_rejected(self, as_of) -> None:
        with pytest.raises(ValidationError) as exc_info:
            normalize_record(["not", "a", "mapping"], "journal", 2, as_of)

        assert exc_info.value.reason == REASON_NOT_A_MAPPING
        assert exc_info.value.record_id == "journal-2"

    def test_csv_style_lists_are_split(self, as_of) -> None:
        obs = normalize_record(
            {
                "title": "Dashboard",
                "challenges": "Component import conflicts; Database table initialization",
                "success_factors": "Progressive enhancement|Modular architecture",
            },
            "conversation",
            0,
            as_of,
        )
        assert obs.challenges == ["Component import conflicts", "Database table initialization"]
        assert obs.successFactors == ["Progressive enhancement", "Modular architecture"]

    def test_tenant_and_status_tags(self, as_of) -> None:
        session = normalize_record(
            {"title": "Explore", "status": "completed", "mode": "explore", "tenant_id": "acme"},
            "dreamstate_session",
            0,
            as_of,
        )
        assert "status:completed" in session.tags
        assert "mode:explore" in session.tags
        assert "tenant:acme" in session.tags

        tenant = normalize_record({"id": "acme", "name": "Acme"}, "tenant", 0, as_of)
        assert "tenant:acme" in tenant.tags

    def test_snake_case_metric_alias(self, as_of) -> None:
        obs = normalize_record(
            {"title": "Explore", "total_nodes": "12"}, "dreamstate_session", 0, as_of
        )
        assert obs.metrics["totalNodes"] == 12.0

    def test_generic_source_takes_all_strings_and_numbers(self, as_of) -> None:
        obs = normalize_record(
            {"id": "g-1", "summary": "Refactor the build", "score": 4, "flag": True},
            "something-else",
            0,
            as_of,
        )
        assert obs.source == SourceType.GENERIC
        assert obs.text == "Refactor the build"
        assert obs.metrics == {"score": 4.0}


# =============================================================================
# Batch Normalization
# =============================================================================


class TestNormalizeBatch:
    """Tests for normalize_batch and the diagnostic report."""

    def test_all_valid(self, sample_records, as_of) -> None:
        observations, report = normalize_batch(sample_records, as_of)

        assert len(observations) == len(sample_records)
        assert [o.id for o in observations] == [r.data["id"] for r in sample_records]
        assert report.seen == len(sample_records)
        assert report.excluded == 0
        assert report.rejections == []

    def test_malformed_records_are_excluded_and_counted(self, sample_records, as_of) -> None:
        records = sample_records + [
            RawRecord(source="journal", data={"confidence": 0.5}),
            RawRecord(source="conversation", data={}),
        ]

        observations, report = normalize_batch(records, as_of)

        assert len(observations) == len(sample_records)
        assert report.seen == len(records)
        assert report.excluded == 2
        assert report.reasonHistogram == {REASON_NO_CONTENT: 2}
        assert [r.recordId for r in report.rejections] == [
            f"journal-{len(sample_records)}",
            f"conversation-{len(sample_records) + 1}",
        ]

    def test_empty_batch(self, as_of) -> None:
        observations, report = normalize_batch([], as_of)
        assert observations == []
        assert report.seen == 0
        assert report.excluded == 0

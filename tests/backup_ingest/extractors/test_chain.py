"""Tests for MetadataExtractorChain fallback and error aggregation."""

from unittest.mock import MagicMock

import pytest

from core.errors.exceptions import (
    InvalidBackupPayloadError,
    InvalidPayloadCode,
    PayloadExtractError,
)
from backup_ingest.extractors.base import (
    UnimplementedEmailMetaExtractor,
    UnimplementedHTTPPostMetaExtractor,
)
from backup_ingest.extractors.chain import MetadataExtractorChain


def make_extractor(name, result=None, error=None):
    extractor = MagicMock()
    extractor.name = name
    if error is not None:
        extractor.extract.side_effect = error
    else:
        extractor.extract.return_value = result
    return extractor


class TestMetadataExtractorChain:
    """Test suite for MetadataExtractorChain."""

    def test_default_order_is_email_then_httppost(self):
        chain = MetadataExtractorChain()

        assert chain.names == ["email", "httppost"]
        assert isinstance(chain.extractors[0], UnimplementedEmailMetaExtractor)
        assert isinstance(chain.extractors[1], UnimplementedHTTPPostMetaExtractor)

    def test_empty_chain_rejected(self):
        with pytest.raises(ValueError):
            MetadataExtractorChain([])

    def test_first_success_short_circuits(self, email_meta):
        email = make_extractor("email", result=email_meta)
        httppost = make_extractor("httppost", result=None)
        chain = MetadataExtractorChain([email, httppost])

        meta = chain.extract_backup_result_meta("ing-1", {"any": "payload"})

        assert meta is email_meta
        email.extract.assert_called_once_with({"any": "payload"})
        httppost.extract.assert_not_called()

    def test_falls_back_to_next_extractor(self, httppost_meta):
        email = make_extractor("email", error=PayloadExtractError("not an email"))
        httppost = make_extractor("httppost", result=httppost_meta)
        chain = MetadataExtractorChain([email, httppost])

        meta = chain.extract_backup_result_meta("ing-1", "payload")

        assert meta is httppost_meta

    def test_unexpected_error_still_falls_back(self, httppost_meta):
        email = make_extractor("email", error=KeyError("boom"))
        httppost = make_extractor("httppost", result=httppost_meta)
        chain = MetadataExtractorChain([email, httppost])

        assert chain.extract_backup_result_meta("ing-1", "payload") is httppost_meta

    def test_all_fail_aggregates_errors(self):
        email = make_extractor("email", error=PayloadExtractError("not an email"))
        httppost = make_extractor("httppost", error=PayloadExtractError("not a post"))
        chain = MetadataExtractorChain([email, httppost])

        with pytest.raises(InvalidBackupPayloadError) as exc_info:
            chain.extract_backup_result_meta("ing-9", "raw-payload")

        err = exc_info.value
        assert err.code == InvalidPayloadCode.INVALID_QUEUE_JSON
        assert err.ingest_id == "ing-9"
        assert err.backup_id is None
        assert err.context["raw_json"] == "raw-payload"
        assert err.context["extract_errors"] == {
            "email": "not an email",
            "httppost": "not a post",
        }

    def test_unexpected_errors_aggregate_traceback(self):
        email = make_extractor("email", error=PayloadExtractError("not an email"))
        httppost = make_extractor("httppost", error=TypeError("unhashable payload"))
        chain = MetadataExtractorChain([email, httppost])

        with pytest.raises(InvalidBackupPayloadError) as exc_info:
            chain.extract_backup_result_meta("ing-9", "raw-payload")

        extract_errors = exc_info.value.context["extract_errors"]
        assert extract_errors["email"] == "not an email"
        assert extract_errors["httppost"].startswith("Traceback")
        assert "TypeError: unhashable payload" in extract_errors["httppost"]

    def test_placeholder_extractors_aggregate_messages(self):
        chain = MetadataExtractorChain()

        with pytest.raises(InvalidBackupPayloadError) as exc_info:
            chain.extract_backup_result_meta("ing-1", {})

        assert exc_info.value.context["extract_errors"] == {
            "email": "extract_backup_result_meta_email not implemented",
            "httppost": "extract_backup_result_meta_httppost not implemented",
        }

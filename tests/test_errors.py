"""
Tests for the errors module.
"""

from email_deal_sync.errors import (
    ClientError,
    ConfigurationError,
    EmailProcessingError,
    EmailSyncError,
    HubSpotApiError,
    HubSpotRateLimitError,
    PartialSuccessResult,
    PipelineError,
    RateLimitExhaustedError,
    wrap_processing_error,
)


class TestErrorHierarchy:
    """Test error class hierarchy."""

    def test_base_error_with_context(self):
        """Test that base error captures context."""
        error = EmailSyncError(
            "Something went wrong",
            context={"email_id": "42", "count": 3},
        )

        assert error.message == "Something went wrong"
        assert error.context == {"email_id": "42", "count": 3}
        assert "email_id" in str(error)

    def test_base_error_without_context(self):
        """Test error without context."""
        error = EmailSyncError("Simple error")

        assert error.message == "Simple error"
        assert error.context == {}
        assert str(error) == "Simple error"

    def test_client_error_inheritance(self):
        """Test client error hierarchy."""
        api_error = HubSpotApiError("API error", status_code=400)
        rate_limit = HubSpotRateLimitError("Rate limited", retry_after=2.0)
        exhausted = RateLimitExhaustedError("Gave up", attempts=4)

        assert isinstance(api_error, ClientError)
        assert isinstance(rate_limit, HubSpotApiError)
        assert isinstance(exhausted, HubSpotApiError)
        assert not isinstance(exhausted, HubSpotRateLimitError)
        assert rate_limit.status_code == 429
        assert rate_limit.retry_after == 2.0
        assert exhausted.attempts == 4

    def test_pipeline_error_inheritance(self):
        """Test pipeline error hierarchy."""
        assert isinstance(ConfigurationError(["HUBSPOT_API_KEY"]), PipelineError)
        assert isinstance(EmailProcessingError("failed"), PipelineError)
        assert isinstance(EmailProcessingError("failed"), EmailSyncError)

    def test_configuration_error_lists_missing_keys(self):
        error = ConfigurationError(["HUBSPOT_API_KEY", "EMAIL_SYNC_ALLOWED_STAGES"])

        assert error.missing == ["HUBSPOT_API_KEY", "EMAIL_SYNC_ALLOWED_STAGES"]
        assert error.message == (
            "Missing required configuration: HUBSPOT_API_KEY, EMAIL_SYNC_ALLOWED_STAGES"
        )


class TestErrorWrapping:
    """Test error wrapping utilities."""

    def test_wrap_api_error_keeps_status(self):
        original = HubSpotApiError("HubSpot API Error (500): boom", status_code=500)
        wrapped = wrap_processing_error(original, "42", "commit")

        assert isinstance(wrapped, EmailProcessingError)
        assert wrapped.message.startswith("Email 42 failed during commit")
        assert wrapped.context["status_code"] == 500
        assert wrapped.context["error_type"] == "HubSpotApiError"

    def test_wrap_generic(self):
        wrapped = wrap_processing_error(KeyError("properties"), "7", "parse")

        assert wrapped.context["stage"] == "parse"
        assert wrapped.context["email_id"] == "7"
        assert "status_code" not in wrapped.context


class TestPartialSuccessResult:
    """Test partial success handling."""

    def test_empty_result(self):
        """Test empty partial success result."""
        result = PartialSuccessResult()

        assert result.success_count == 0
        assert result.failure_count == 0
        assert result.total_count == 0
        assert result.all_succeeded is True  # Vacuously true
        assert result.partial_success is False

    def test_partial_success(self):
        """Test partial success scenario."""
        result = PartialSuccessResult()
        result.add_success(item_id="e1")
        result.add_failure(EmailProcessingError("Failed"), item_id="e2")
        result.add_success(item_id="e3")

        assert result.success_count == 2
        assert result.failure_count == 1
        assert result.total_count == 3
        assert result.all_succeeded is False
        assert result.partial_success is True

    def test_to_dict(self):
        """Test dictionary serialization."""
        result = PartialSuccessResult()
        result.add_success(item_id="e1")
        result.add_failure(EmailProcessingError("Bad email"), item_id="e2")

        data = result.to_dict()

        assert data["success_count"] == 1
        assert data["failure_count"] == 1
        assert data["total_count"] == 2
        assert data["all_succeeded"] is False
        assert "e1" in data["succeeded_ids"]
        assert "e2" in data["failed_ids"]
        assert len(data["errors"]) == 1

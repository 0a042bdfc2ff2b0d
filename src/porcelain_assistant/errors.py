"""Error taxonomy shared by the retrieval core and its HTTP surface."""

from __future__ import annotations


GENERIC_FAILURE_MESSAGE = "Sorry, something went wrong while answering your question. Please try again."


class AssistantError(RuntimeError):
    code = "internal_error"


class ConfigurationError(AssistantError):
    """Required credentials or settings are missing; fatal at startup."""

    code = "configuration_error"


class ProviderError(AssistantError):
    """The embedding or completion provider failed or answered with a bad shape."""

    code = "provider_error"


class DeadlineExceededError(AssistantError):
    code = "timeout"

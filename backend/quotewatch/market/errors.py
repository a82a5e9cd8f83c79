"""Exception hierarchy for the quote refresh engine."""

from __future__ import annotations

from typing import Any


class QuoteWatchError(Exception):
    """Base exception for all quotewatch errors.

    Carries an optional ``context`` dict with structured metadata that can be
    logged without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = context or {}


class ConfigIncompleteError(QuoteWatchError):
    """A provider is selected but its credentials are not all configured.

    Policy: skip the fetch silently. Unconfigured credentials are a steady
    state, not a failure.

    Context keys:
        missing: list[str], names of the absent settings
    """


class UnsupportedCodeFormatError(QuoteWatchError, ValueError):
    """An identifier cannot be translated into a provider symbol.

    Policy: skip that entry, keep the rest of the cycle.

    Context keys:
        identifier: str
        provider: str
    """


class UpstreamRequestError(QuoteWatchError):
    """Non-2xx HTTP response or transport failure.

    Policy: the whole cycle yields zero quotes for that provider; the next
    tick retries.
    """

    def __init__(self, status: int | None, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, context)
        self.status = status
        self.message = message


class MalformedNumericFieldError(QuoteWatchError, ValueError):
    """A price, cost or position string is not a number.

    Policy: omit the derived field; the record is still emitted.

    Context keys:
        field: str
        value: Any
    """


class CronExpressionError(QuoteWatchError, ValueError):
    """Schedule expression could not be parsed.

    Raised to the caller of ``ScheduleManager.run_job``.
    """

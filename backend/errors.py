"""Exceptions raised by the workout ledger services."""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for all ledger errors."""


class StoreError(TrackerError):
    """Committing to the SQLite store failed.

    The transaction that triggered the failure has already been rolled back
    when this is raised.
    """


class IntegrityError(TrackerError):
    """An entity is missing a relationship the operation depends on."""


class ParseError(TrackerError):
    """A CSV row could not be interpreted."""


class ExternalChannelError(TrackerError):
    """The live display or notification channel rejected a request."""

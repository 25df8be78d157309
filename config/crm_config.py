"""
CRM rule configuration.

Constants for contact validation, duplicate detection, summary aggregation
and listing defaults.
"""


# Interaction types accepted by log_interaction / edit_interaction
INTERACTION_TYPES: tuple[str, ...] = (
    "catch-up",
    "meeting",
    "call",
    "message",
    "event",
    "other",
)


class ContactConfig:
    """Configuration for contact records."""

    # A contact name must have at least first + last name
    MIN_NAME_TOKENS: int = 2

    # Maximum contacts returned by search_contacts
    DEFAULT_SEARCH_LIMIT: int = 20


class DuplicateDetectionConfig:
    """Configuration for near-duplicate interaction detection."""

    # Candidate interactions must be within this many days of the new one (inclusive)
    WINDOW_DAYS: int = 3

    # |P ∩ P'| / max(|P|, |P'|) must reach this
    MIN_PARTICIPANT_OVERLAP: float = 0.5

    # Words shorter than this are ignored when comparing summaries
    MIN_WORD_LENGTH: int = 4

    # Shared words needed: min(MAX_SHARED_WORDS, SHARED_WORD_RATIO * |new words|)
    MAX_SHARED_WORDS: int = 3
    SHARED_WORD_RATIO: float = 0.3


class SummaryConfig:
    """Configuration for derived contact summaries."""

    TOP_TOPICS: int = 5
    RECENT_INTERACTIONS: int = 3
    SNIPPET_LENGTH: int = 100
    RECENT_SEPARATOR: str = ". "


class ListingConfig:
    """Default limits for interaction listings."""

    DEFAULT_RECENT_LIMIT: int = 20
    DEFAULT_NEXT_STEPS_LIMIT: int = 50

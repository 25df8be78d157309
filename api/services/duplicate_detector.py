"""
Near-duplicate detection for new interactions.

A candidate is a possible duplicate of an existing interaction when:
1. they share at least one participant and are dated within a few days
2. participant overlap |P ∩ P'| / max(|P|, |P'|) reaches the minimum
3. their summaries share enough significant words

The detector only reports matches. It never blocks or merges; the caller
decides whether to force creation.
"""
import logging
from datetime import date

from api.services.crm_models import Interaction
from config.crm_config import DuplicateDetectionConfig

logger = logging.getLogger(__name__)


def significant_words(text: str) -> set[str]:
    """Lowercased whitespace tokens long enough to carry meaning."""
    return {
        word
        for word in (text or "").lower().split()
        if len(word) >= DuplicateDetectionConfig.MIN_WORD_LENGTH
    }


def participant_overlap(new_ids: list[str], existing_ids: list[str]) -> float:
    new_set, existing_set = set(new_ids), set(existing_ids)
    largest = max(len(new_set), len(existing_set))
    if largest == 0:
        return 0.0
    return len(new_set & existing_set) / largest


def required_shared_words(new_words: set[str]) -> float:
    return min(
        DuplicateDetectionConfig.MAX_SHARED_WORDS,
        DuplicateDetectionConfig.SHARED_WORD_RATIO * len(new_words),
    )


def _days_apart(first: str, second: str) -> int:
    return abs((date.fromisoformat(first) - date.fromisoformat(second)).days)


def find_similar_interactions(
    contact_ids: list[str],
    interaction_date: str,
    summary: str,
    interactions: list[Interaction],
) -> list[Interaction]:
    """
    Find existing interactions that look like the one about to be logged.

    Args:
        contact_ids: Resolved participant ids of the new interaction
        interaction_date: YYYY-MM-DD date of the new interaction
        summary: Summary text of the new interaction
        interactions: Pool to compare against (already privacy-filtered by the caller)

    Returns:
        Matching interactions, in pool order
    """
    new_ids = set(contact_ids)
    new_words = significant_words(summary)
    threshold = required_shared_words(new_words)

    similar = []
    for existing in interactions:
        if not new_ids.intersection(existing.contact_ids):
            continue
        try:
            if _days_apart(existing.date, interaction_date) > DuplicateDetectionConfig.WINDOW_DAYS:
                continue
        except ValueError:
            logger.debug(f"Skipping interaction {existing.id} with unparseable date {existing.date!r}")
            continue

        if participant_overlap(contact_ids, existing.contact_ids) < DuplicateDetectionConfig.MIN_PARTICIPANT_OVERLAP:
            continue

        shared = len(new_words & significant_words(existing.summary))
        if shared >= threshold:
            similar.append(existing)

    if similar:
        logger.debug(f"Found {len(similar)} similar interaction(s) near {interaction_date}")
    return similar

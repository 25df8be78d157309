"""
Derived per-contact summaries.

A ContactSummary is a cache: a pure function of one contact plus the
interactions that qualify for its rollup. It exists only for contacts
that are not private.

Rebuilds are batched. Whenever one event affects several contacts (a
group interaction, a cascading contact delete), all affected summaries
are recomputed from one read and saved with one write. Rebuilding each
contact in its own read-compute-write cycle loses updates when cycles
interleave, because every full-collection write replaces the others.
"""
import logging
from collections import Counter
from typing import Iterable, Optional

from api.services.crm_models import Contact, ContactSummary, Interaction
from api.services.crm_store import CrmStore
from api.services.privacy import index_contacts, is_contact_private, is_interaction_private
from config.crm_config import SummaryConfig

logger = logging.getLogger(__name__)


def rank_topics(interactions: list[Interaction], limit: int = SummaryConfig.TOP_TOPICS) -> list[str]:
    """
    Most frequent topics, highest count first.

    Ties are broken alphabetically so the ranking is deterministic.
    """
    counts = Counter(topic for interaction in interactions for topic in interaction.topics)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [topic for topic, _ in ranked[:limit]]


def _recent_summary(interactions: list[Interaction]) -> str:
    snippets = [
        f"{i.date}: {i.summary[:SummaryConfig.SNIPPET_LENGTH]}"
        for i in interactions[:SummaryConfig.RECENT_INTERACTIONS]
    ]
    return SummaryConfig.RECENT_SEPARATOR.join(snippets)


def build_contact_summary(
    contact_id: str,
    contacts: list[Contact],
    interactions: list[Interaction],
    contacts_by_id: Optional[dict[str, Contact]] = None,
) -> Optional[ContactSummary]:
    """
    Compute the summary for one contact (pure, no I/O).

    Args:
        contact_id: Contact to summarize
        contacts: All contacts
        interactions: All interactions
        contacts_by_id: Optional pre-built index of contacts

    Returns:
        ContactSummary, or None if the contact is missing or private
    """
    contacts_by_id = contacts_by_id if contacts_by_id is not None else index_contacts(contacts)
    contact = contacts_by_id.get(contact_id)
    if contact is None or is_contact_private(contact):
        return None

    qualifying = [
        i for i in interactions
        if contact_id in i.contact_ids and not is_interaction_private(i, contacts_by_id)
    ]
    # Stable sort keeps stored order for same-day interactions
    qualifying.sort(key=lambda i: i.date, reverse=True)

    return ContactSummary(
        id=contact.id,
        name=contact.name,
        company=contact.company,
        role=contact.role,
        tags=list(contact.tags),
        expertise=list(contact.expertise),
        interaction_count=len(qualifying),
        last_interaction=qualifying[0].date if qualifying else None,
        first_interaction=qualifying[-1].date if qualifying else None,
        top_topics=rank_topics(qualifying),
        locations=list(dict.fromkeys(i.location for i in qualifying if i.location)),
        recent_summary=_recent_summary(qualifying),
        mentioned_next_steps=[i.mentioned_next_steps for i in qualifying if i.mentioned_next_steps],
        notes=list(contact.notes),
    )


def compute_all_summaries(
    contacts: list[Contact],
    interactions: list[Interaction],
) -> list[ContactSummary]:
    """Summaries for every non-private contact, in contact order."""
    contacts_by_id = index_contacts(contacts)
    summaries = []
    for contact in contacts:
        summary = build_contact_summary(contact.id, contacts, interactions, contacts_by_id)
        if summary is not None:
            summaries.append(summary)
    return summaries


def rebuild_contact_summaries(
    store: CrmStore,
    contact_ids: Iterable[str],
    contacts: Optional[list[Contact]] = None,
    interactions: Optional[list[Interaction]] = None,
) -> tuple[list[str], list[str]]:
    """
    Recompute the summaries of a set of contacts in one batch.

    Reads the summaries collection once, recomputes every affected entry in
    memory and writes the collection once. Contacts and interactions are
    only read when the caller does not pass its post-mutation state.

    Args:
        store: Collection store
        contact_ids: Affected contact ids (duplicates ignored)
        contacts: Current contacts, if the caller already holds them
        interactions: Current interactions, if the caller already holds them

    Returns:
        (updated_ids, removed_ids)
    """
    affected = list(dict.fromkeys(contact_ids))
    if not affected:
        return [], []

    if contacts is None:
        contacts = store.read_contacts()
    if interactions is None:
        interactions = store.read_interactions()
    summaries = store.read_summaries()

    contacts_by_id = index_contacts(contacts)
    updated, removed = [], []

    for contact_id in affected:
        summary = build_contact_summary(contact_id, contacts, interactions, contacts_by_id)
        position = next((n for n, s in enumerate(summaries) if s.id == contact_id), None)

        if summary is None:
            if position is not None:
                del summaries[position]
                removed.append(contact_id)
        elif position is None:
            summaries.append(summary)
            updated.append(contact_id)
        else:
            summaries[position] = summary
            updated.append(contact_id)

    store.write_summaries(summaries)
    logger.info(
        f"Rebuilt {len(updated)} contact summaries, removed {len(removed)} "
        f"({len(affected)} affected)"
    )
    return updated, removed


def rebuild_all_summaries(
    store: CrmStore,
    contacts: Optional[list[Contact]] = None,
    interactions: Optional[list[Interaction]] = None,
    write: bool = True,
) -> list[ContactSummary]:
    """
    Recompute every summary from scratch and replace the collection.

    Entries for missing or private contacts are dropped.

    Args:
        store: Collection store
        contacts: Current contacts, if the caller already holds them
        interactions: Current interactions, if the caller already holds them
        write: If False, compute without replacing the collection

    Returns:
        The rebuilt summaries, in contact order
    """
    if contacts is None:
        contacts = store.read_contacts()
    if interactions is None:
        interactions = store.read_interactions()

    summaries = compute_all_summaries(contacts, interactions)
    if write:
        store.write_summaries(summaries)
        logger.info(f"Rebuilt all contact summaries ({len(summaries)} entries)")
    return summaries

"""
Privacy filter for contacts and interactions.

A caller is "unlocked" for one call when it supplies the configured
passphrase. When locked:
- private contacts are hidden from listings, lookups and mutations
- interactions that are flagged private, or that include any private
  participant, are hidden from listings
- in a public contact's own history, group interactions stay visible but
  private co-participants are stripped from the participant projection
"""
import logging
import secrets
from typing import Optional

from api.services.crm_models import Contact, CrmConfig, Interaction
from api.services.crm_results import (
    ERROR_KEY_MISMATCH,
    OperationError,
    PrivacyStatus,
    InteractionView,
    validation_error,
)
from api.services.crm_store import CrmStore

logger = logging.getLogger(__name__)

UNKNOWN_PARTICIPANT = "Unknown"

PRIVACY_OPERATIONS = ("set_key", "status")


def index_contacts(contacts: list[Contact]) -> dict[str, Contact]:
    return {c.id: c for c in contacts}


def is_contact_private(contact: Contact) -> bool:
    return contact.private is True


def is_interaction_private(interaction: Interaction, contacts_by_id: dict[str, Contact]) -> bool:
    """Private if flagged, or if any participant is a private contact."""
    if interaction.private is True:
        return True
    for contact_id in interaction.contact_ids:
        contact = contacts_by_id.get(contact_id)
        if contact and is_contact_private(contact):
            return True
    return False


def is_unlocked(provided_key: Optional[str], config: CrmConfig) -> bool:
    """
    Check whether the provided key unlocks private records.

    An unconfigured key never unlocks anything, even when the caller
    also passes an empty key.
    """
    if not config.private_key or not provided_key:
        return False
    return secrets.compare_digest(provided_key.encode("utf-8"), config.private_key.encode("utf-8"))


def visible_contacts(contacts: list[Contact], unlocked: bool) -> list[Contact]:
    if unlocked:
        return list(contacts)
    return [c for c in contacts if not is_contact_private(c)]


def visible_interactions(
    interactions: list[Interaction],
    contacts_by_id: dict[str, Contact],
    unlocked: bool,
) -> list[Interaction]:
    """Listing-level filter: a locked caller sees no interaction touching private data."""
    if unlocked:
        return list(interactions)
    return [i for i in interactions if not is_interaction_private(i, contacts_by_id)]


def redact_participants(
    contact_ids: list[str],
    contacts_by_id: dict[str, Contact],
    unlocked: bool,
) -> list[str]:
    """Drop private participants from a participant list for a locked caller."""
    if unlocked:
        return list(contact_ids)
    redacted = []
    for contact_id in contact_ids:
        contact = contacts_by_id.get(contact_id)
        if contact and is_contact_private(contact):
            continue
        redacted.append(contact_id)
    return redacted


def participant_names(contact_ids: list[str], contacts_by_id: dict[str, Contact]) -> list[str]:
    names = []
    for contact_id in contact_ids:
        contact = contacts_by_id.get(contact_id)
        names.append(contact.name if contact else UNKNOWN_PARTICIPANT)
    return names


def project_interaction(
    interaction: Interaction,
    contacts_by_id: dict[str, Contact],
    unlocked: bool,
) -> InteractionView:
    """Build the caller-facing view: redacted participant ids plus their names."""
    contact_ids = redact_participants(interaction.contact_ids, contacts_by_id, unlocked)
    return InteractionView(
        interaction=interaction,
        contact_ids=contact_ids,
        participant_names=participant_names(contact_ids, contacts_by_id),
    )


def manage_privacy(
    store: CrmStore,
    operation: str,
    current_key: Optional[str] = None,
    new_key: Optional[str] = None,
):
    """
    Set the privacy passphrase or report privacy status.

    Args:
        store: Collection store
        operation: "set_key" or "status"
        current_key: Existing passphrase, required when one is already set
        new_key: Passphrase to set (set_key only)

    Returns:
        PrivacyStatus on success, OperationError otherwise
    """
    config = store.read_config()

    if operation == "status":
        contacts = store.read_contacts()
        interactions = store.read_interactions()
        contacts_by_id = index_contacts(contacts)
        return PrivacyStatus(
            key_set=config.key_set,
            private_contact_count=sum(1 for c in contacts if is_contact_private(c)),
            private_interaction_count=sum(
                1 for i in interactions if is_interaction_private(i, contacts_by_id)
            ),
        )

    if operation == "set_key":
        if not new_key:
            return validation_error("newKey is required for set_key")
        if config.key_set and not is_unlocked(current_key, config):
            logger.warning("Refused privacy key change: current key mismatch")
            return OperationError(
                ERROR_KEY_MISMATCH,
                "Current key does not match. Provide the existing passphrase as currentKey to change it.",
            )
        changed = config.key_set
        store.write_config(CrmConfig(private_key=new_key))
        logger.info(f"Privacy key {'changed' if changed else 'set'}")
        return PrivacyStatus(
            key_set=True,
            message="Privacy key updated" if changed else "Privacy key set",
        )

    return validation_error(
        f"Unknown operation: {operation}. Expected one of {', '.join(PRIVACY_OPERATIONS)}"
    )

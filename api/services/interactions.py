"""
Interaction repository: log, edit, delete and list interactions.

Participants are resolved only against contacts the caller may see, so a
hidden participant fails exactly like a missing one. After each mutation
the summaries of every affected participant are rebuilt in one batch.
"""
import logging
from typing import Optional, Union

from api.services.contact_summary import rebuild_contact_summaries
from api.services.contacts import find_contact_by_name
from api.services.crm_inputs import InteractionPatch, NewInteraction
from api.services.crm_models import Contact, Interaction, utc_now
from api.services.crm_results import (
    DuplicateWarning,
    InteractionView,
    LoggedInteraction,
    OperationError,
    not_found,
    reference_error,
    validation_error,
)
from api.services.crm_store import CrmStore
from api.services.duplicate_detector import find_similar_interactions
from api.services.privacy import (
    index_contacts,
    is_interaction_private,
    is_unlocked,
    participant_names,
    project_interaction,
    visible_contacts,
    visible_interactions,
)
from config.crm_config import DuplicateDetectionConfig, ListingConfig
from config.settings import settings

logger = logging.getLogger(__name__)


def _newest_first(interactions: list[Interaction]) -> list[Interaction]:
    return sorted(interactions, key=lambda i: i.date, reverse=True)


class InteractionService:
    """Operations over the interactions collection."""

    def __init__(self, store: CrmStore):
        self.store = store

    def _unlocked(self, private_key: Optional[str]) -> bool:
        return is_unlocked(private_key, self.store.read_config())

    def _resolve_participants(
        self,
        new_interaction: NewInteraction,
        contacts: list[Contact],
    ) -> Union[list[str], OperationError]:
        """
        Resolve participant ids.

        Precedence: contact_ids > contact_names > contact_id > contact_name.
        Any participant that cannot be resolved fails the whole call.
        """
        by_id = index_contacts(contacts)
        resolved = []

        if new_interaction.contact_ids:
            for contact_id in new_interaction.contact_ids:
                if contact_id not in by_id:
                    return reference_error(f"Contact not found with ID: {contact_id}")
                resolved.append(contact_id)
        elif new_interaction.contact_names:
            for name in new_interaction.contact_names:
                contact = find_contact_by_name(name, contacts)
                if contact is None:
                    return reference_error(f"Contact not found: {name}")
                resolved.append(contact.id)
        elif new_interaction.contact_id:
            if new_interaction.contact_id not in by_id:
                return reference_error(f"Contact not found with ID: {new_interaction.contact_id}")
            resolved.append(new_interaction.contact_id)
        elif new_interaction.contact_name:
            contact = find_contact_by_name(new_interaction.contact_name, contacts)
            if contact is None:
                return reference_error(f"Contact not found: {new_interaction.contact_name}")
            resolved.append(contact.id)
        else:
            return validation_error(
                "Provide contactNames/contactIds (for groups) or contactName/contactId (for single)"
            )

        return list(dict.fromkeys(resolved))

    def _find(
        self,
        interactions: list[Interaction],
        interaction_id: str,
        contacts_by_id: dict[str, Contact],
        unlocked: bool,
    ) -> Union[Interaction, OperationError]:
        interaction = next((i for i in interactions if i.id == interaction_id), None)
        if interaction is None or (not unlocked and is_interaction_private(interaction, contacts_by_id)):
            return not_found(f"Interaction not found: {interaction_id}")
        return interaction

    def log(
        self,
        new_interaction: NewInteraction,
        force_create: bool = False,
        private_key: Optional[str] = None,
    ) -> Union[LoggedInteraction, DuplicateWarning, OperationError]:
        """
        Log an interaction with one or more contacts.

        Args:
            new_interaction: Participants and fields of the interaction
            force_create: Skip the duplicate check
            private_key: Privacy passphrase

        Returns:
            LoggedInteraction, DuplicateWarning (nothing written) or OperationError
        """
        unlocked = self._unlocked(private_key)
        contacts = self.store.read_contacts()
        interactions = self.store.read_interactions()
        contacts_by_id = index_contacts(contacts)

        contact_ids = self._resolve_participants(new_interaction, visible_contacts(contacts, unlocked))
        if isinstance(contact_ids, OperationError):
            return contact_ids

        interaction_date = new_interaction.date or utc_now().date().isoformat()

        if not force_create:
            pool = visible_interactions(interactions, contacts_by_id, unlocked)
            similar = find_similar_interactions(
                contact_ids, interaction_date, new_interaction.summary, pool
            )
            if similar:
                logger.warning(f"Duplicate interaction warning: {len(similar)} similar interaction(s)")
                return DuplicateWarning(
                    message=(
                        f"Found {len(similar)} similar interaction(s) with overlapping participants "
                        f"within ±{DuplicateDetectionConfig.WINDOW_DAYS} days. This may be a duplicate. "
                        "If this is genuinely a different interaction, call log_interaction again with "
                        "forceCreate: true. If you meant to update an existing interaction, use "
                        "edit_interaction instead."
                    ),
                    matches=[self._similar_match(i, contacts_by_id, unlocked) for i in similar],
                    match_field="similarInteractions",
                )

        interaction = Interaction(
            contact_ids=contact_ids,
            date=interaction_date,
            type=new_interaction.type or settings.default_interaction_type,
            summary=new_interaction.summary,
            topics=list(new_interaction.topics),
            mentioned_next_steps=new_interaction.mentioned_next_steps,
            location=new_interaction.location,
            private=new_interaction.private,
            created_at=utc_now(),
        )

        interactions.append(interaction)
        self.store.write_interactions(interactions)
        logger.info(f"Logged interaction {interaction.id} with {len(contact_ids)} participant(s)")

        rebuild_contact_summaries(self.store, contact_ids, contacts=contacts, interactions=interactions)
        return LoggedInteraction(
            interaction=interaction,
            participant_names=participant_names(contact_ids, contacts_by_id),
        )

    @staticmethod
    def _similar_match(interaction: Interaction, contacts_by_id: dict[str, Contact], unlocked: bool) -> dict:
        view = project_interaction(interaction, contacts_by_id, unlocked)
        return {
            "id": interaction.id,
            "date": interaction.date,
            "type": interaction.type,
            "summary": interaction.summary,
            "topics": list(interaction.topics),
            "participantNames": view.participant_names,
        }

    def edit(
        self,
        interaction_id: str,
        patch: InteractionPatch,
        private_key: Optional[str] = None,
    ) -> Union[Interaction, OperationError]:
        """
        Apply a field patch to an interaction.

        Summaries are rebuilt for the union of the participants before and
        after the edit, so a removed participant loses the interaction too.
        """
        unlocked = self._unlocked(private_key)
        contacts = self.store.read_contacts()
        interactions = self.store.read_interactions()
        contacts_by_id = index_contacts(contacts)

        interaction = self._find(interactions, interaction_id, contacts_by_id, unlocked)
        if isinstance(interaction, OperationError):
            return interaction

        previous_ids = list(interaction.contact_ids)
        changes = patch.changes()

        if "contact_ids" in changes:
            visible_ids = {c.id for c in visible_contacts(contacts, unlocked)}
            for contact_id in changes["contact_ids"]:
                if contact_id not in visible_ids:
                    return reference_error(f"Contact not found with ID: {contact_id}")
            changes["contact_ids"] = list(dict.fromkeys(changes["contact_ids"]))

        for field_name, value in changes.items():
            setattr(interaction, field_name, value)
        interaction.updated_at = utc_now()

        self.store.write_interactions(interactions)
        logger.info(f"Edited interaction {interaction.id} ({', '.join(sorted(changes)) or 'no fields'})")

        rebuild_contact_summaries(
            self.store,
            previous_ids + interaction.contact_ids,
            contacts=contacts,
            interactions=interactions,
        )
        return interaction

    def delete(
        self,
        interaction_id: str,
        private_key: Optional[str] = None,
    ) -> Union[Interaction, OperationError]:
        """Delete an interaction and rebuild all of its participants."""
        unlocked = self._unlocked(private_key)
        contacts = self.store.read_contacts()
        interactions = self.store.read_interactions()

        interaction = self._find(interactions, interaction_id, index_contacts(contacts), unlocked)
        if isinstance(interaction, OperationError):
            return interaction

        remaining = [i for i in interactions if i.id != interaction.id]
        self.store.write_interactions(remaining)
        logger.info(f"Deleted interaction {interaction.id}")

        rebuild_contact_summaries(
            self.store, interaction.contact_ids, contacts=contacts, interactions=remaining
        )
        return interaction

    def list_recent(
        self,
        contact_id: Optional[str] = None,
        contact_name: Optional[str] = None,
        since: Optional[str] = None,
        interaction_type: Optional[str] = None,
        limit: int = ListingConfig.DEFAULT_RECENT_LIMIT,
        private_key: Optional[str] = None,
    ) -> Union[list[InteractionView], OperationError]:
        """
        Recent interactions, newest first.

        Args:
            contact_id: Only interactions with this participant
            contact_name: Participant by name (ignored when contact_id is given)
            since: Minimum YYYY-MM-DD date, inclusive
            interaction_type: Only this type
            limit: Maximum results
            private_key: Privacy passphrase
        """
        unlocked = self._unlocked(private_key)
        contacts = self.store.read_contacts()
        contacts_by_id = index_contacts(contacts)
        results = visible_interactions(self.store.read_interactions(), contacts_by_id, unlocked)

        if contact_id:
            results = [i for i in results if contact_id in i.contact_ids]
        elif contact_name:
            contact = find_contact_by_name(contact_name, visible_contacts(contacts, unlocked))
            if contact is None:
                return not_found(f"Contact not found: {contact_name}")
            results = [i for i in results if contact.id in i.contact_ids]

        if since:
            results = [i for i in results if i.date >= since]
        if interaction_type:
            results = [i for i in results if i.type == interaction_type]

        results = _newest_first(results)[:limit]
        return [project_interaction(i, contacts_by_id, unlocked) for i in results]

    def list_mentioned_next_steps(
        self,
        limit: int = ListingConfig.DEFAULT_NEXT_STEPS_LIMIT,
        private_key: Optional[str] = None,
    ) -> list[InteractionView]:
        """Interactions that mention next steps, newest first."""
        unlocked = self._unlocked(private_key)
        contacts_by_id = index_contacts(self.store.read_contacts())
        results = [
            i for i in visible_interactions(self.store.read_interactions(), contacts_by_id, unlocked)
            if i.mentioned_next_steps
        ]
        results = _newest_first(results)[:limit]
        return [project_interaction(i, contacts_by_id, unlocked) for i in results]

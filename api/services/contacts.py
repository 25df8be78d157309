"""
Contact repository: search, get, add, update and delete contacts.

Every operation loads what it needs from the store, decides in memory,
writes each touched collection at most once, and then rebuilds the
summaries of exactly the affected contacts in one batch.
"""
import logging
from typing import Optional, Union

from api.services.contact_summary import rebuild_contact_summaries
from api.services.crm_inputs import ContactPatch, NewContact
from api.services.crm_models import Contact, ContactInfo, Interaction, utc_now
from api.services.crm_results import (
    ContactDetail,
    DeletedContact,
    DuplicateWarning,
    OperationError,
    PendingConfirmation,
    not_found,
    validation_error,
)
from api.services.crm_store import CrmStore
from api.services.privacy import (
    index_contacts,
    is_interaction_private,
    is_unlocked,
    project_interaction,
    visible_contacts,
)
from config.crm_config import ContactConfig

logger = logging.getLogger(__name__)

CONTACT_INFO_FIELDS = ("email", "phone", "linkedin")


def validate_contact_name(name: str) -> Optional[str]:
    """Return an error message if the name lacks a first and last name."""
    if len((name or "").split()) < ContactConfig.MIN_NAME_TOKENS:
        return (
            f'Contact name must include both first and last name. Got: "{name}". '
            "Please ask the user for their full name."
        )
    return None


def _matches_name(contact: Contact, query: str) -> bool:
    q = query.lower()
    if q in contact.name.lower():
        return True
    return bool(contact.nickname) and q in contact.nickname.lower()


def find_contact_by_name(name: str, contacts: list[Contact]) -> Optional[Contact]:
    """First contact whose name or nickname contains the query (case-insensitive)."""
    return next((c for c in contacts if _matches_name(c, name)), None)


def find_contacts_by_name(name: str, contacts: list[Contact]) -> list[Contact]:
    return [c for c in contacts if _matches_name(c, name)]


def _matches_query(contact: Contact, query: str) -> bool:
    """Free-text match across profile fields, tags, expertise and notes."""
    q = query.lower()
    fields = [contact.name, contact.nickname, contact.company, contact.role, contact.how_we_met]
    if any(value and q in value.lower() for value in fields):
        return True
    lists = (contact.tags, contact.expertise, contact.notes)
    return any(q in item.lower() for items in lists for item in items)


class ContactService:
    """Operations over the contacts collection."""

    def __init__(self, store: CrmStore):
        self.store = store

    def _unlocked(self, private_key: Optional[str]) -> bool:
        return is_unlocked(private_key, self.store.read_config())

    def _resolve(
        self,
        contacts: list[Contact],
        contact_id: Optional[str],
        name: Optional[str],
    ) -> Union[Contact, OperationError]:
        """Find a contact by exact id or by name among the contacts the caller may see."""
        if contact_id:
            contact = next((c for c in contacts if c.id == contact_id), None)
        elif name:
            contact = find_contact_by_name(name, contacts)
        else:
            return validation_error("Provide either name or contactId")

        if contact is None:
            return not_found(f"Contact not found: {contact_id or name}")
        return contact

    def search(
        self,
        query: Optional[str] = None,
        tag: Optional[str] = None,
        company: Optional[str] = None,
        expertise: Optional[str] = None,
        limit: int = ContactConfig.DEFAULT_SEARCH_LIMIT,
        private_key: Optional[str] = None,
    ) -> list[Contact]:
        """
        Search contacts. All given filters must match.

        Args:
            query: Substring across name, nickname, company, role, howWeMet, tags, expertise, notes
            tag: Exact tag (case-insensitive)
            company: Company substring
            expertise: Expertise substring
            limit: Maximum results
            private_key: Privacy passphrase

        Returns:
            Matching contacts, in stored order
        """
        results = visible_contacts(self.store.read_contacts(), self._unlocked(private_key))

        if query:
            results = [c for c in results if _matches_query(c, query)]
        if tag:
            wanted = tag.lower()
            results = [c for c in results if any(t.lower() == wanted for t in c.tags)]
        if company:
            wanted = company.lower()
            results = [c for c in results if c.company and wanted in c.company.lower()]
        if expertise:
            wanted = expertise.lower()
            results = [c for c in results if any(wanted in e.lower() for e in c.expertise)]

        logger.debug(f"Contact search matched {len(results)} record(s)")
        return results[:limit]

    def get(
        self,
        contact_id: Optional[str] = None,
        name: Optional[str] = None,
        private_key: Optional[str] = None,
    ) -> Union[ContactDetail, OperationError]:
        """
        Get a contact and its interaction history, newest first.

        Group interactions with private co-participants stay in the history
        of a public contact; the private participants are stripped from them.
        """
        unlocked = self._unlocked(private_key)
        contacts = self.store.read_contacts()
        contact = self._resolve(visible_contacts(contacts, unlocked), contact_id, name)
        if isinstance(contact, OperationError):
            return contact

        contacts_by_id = index_contacts(contacts)
        history = [
            i for i in self.store.read_interactions()
            if contact.id in i.contact_ids and (unlocked or not i.private)
        ]
        history.sort(key=lambda i: i.date, reverse=True)

        return ContactDetail(
            contact=contact,
            interactions=[project_interaction(i, contacts_by_id, unlocked) for i in history],
        )

    def add(
        self,
        new_contact: NewContact,
        force_duplicate: bool = False,
        private_key: Optional[str] = None,
    ) -> Union[Contact, DuplicateWarning, OperationError]:
        """
        Create a contact.

        Returns a DuplicateWarning and writes nothing when existing contacts
        match the name, unless force_duplicate is set.
        """
        name = new_contact.name.strip()
        error = validate_contact_name(name)
        if error:
            return validation_error(error)

        contacts = self.store.read_contacts()
        matches = find_contacts_by_name(name, visible_contacts(contacts, self._unlocked(private_key)))
        if matches and not force_duplicate:
            logger.warning(f"Duplicate contact warning: {len(matches)} match(es) for new contact")
            return DuplicateWarning(
                message=(
                    f'Found {len(matches)} existing contact(s) matching "{name}". '
                    "If this is a different person, call add_contact again with forceDuplicate: true. "
                    "Consider adding company or role to distinguish them."
                ),
                matches=[c.to_brief() for c in matches],
                match_field="existingContacts",
            )

        now = utc_now()
        contact = Contact(
            name=name,
            nickname=new_contact.nickname,
            company=new_contact.company,
            role=new_contact.role,
            how_we_met=new_contact.how_we_met,
            tags=list(new_contact.tags),
            contact_info=ContactInfo(
                email=new_contact.email,
                phone=new_contact.phone,
                linkedin=new_contact.linkedin,
            ),
            notes=list(new_contact.notes),
            expertise=list(new_contact.expertise),
            private=new_contact.private,
            created_at=now,
            updated_at=now,
        )

        contacts.append(contact)
        self.store.write_contacts(contacts)
        logger.info(f"Added contact {contact.id}")

        rebuild_contact_summaries(self.store, [contact.id], contacts=contacts)
        return contact

    def update(
        self,
        patch: ContactPatch,
        contact_id: Optional[str] = None,
        name: Optional[str] = None,
        private_key: Optional[str] = None,
    ) -> Union[Contact, OperationError]:
        """
        Apply a field patch to a contact.

        Toggling the private flag also rebuilds every co-participant,
        since their qualifying interactions change with it.
        """
        unlocked = self._unlocked(private_key)
        contacts = self.store.read_contacts()
        contact = self._resolve(visible_contacts(contacts, unlocked), contact_id, name)
        if isinstance(contact, OperationError):
            return contact

        changes = patch.changes()
        if "name" in changes:
            error = validate_contact_name(changes["name"])
            if error:
                return validation_error(error)
            changes["name"] = changes["name"].strip()

        privacy_changed = "private" in changes and changes["private"] != contact.private

        for field_name, value in changes.items():
            if field_name in CONTACT_INFO_FIELDS:
                setattr(contact.contact_info, field_name, value)
            else:
                setattr(contact, field_name, value)
        contact.updated_at = utc_now()

        self.store.write_contacts(contacts)
        logger.info(f"Updated contact {contact.id} ({', '.join(sorted(changes)) or 'no fields'})")

        affected = [contact.id]
        interactions = None
        if privacy_changed:
            interactions = self.store.read_interactions()
            for interaction in interactions:
                if contact.id in interaction.contact_ids:
                    affected.extend(interaction.contact_ids)

        rebuild_contact_summaries(self.store, affected, contacts=contacts, interactions=interactions)
        return contact

    def delete(
        self,
        contact_id: Optional[str] = None,
        name: Optional[str] = None,
        cascade: bool = False,
        private_key: Optional[str] = None,
    ) -> Union[DeletedContact, PendingConfirmation, OperationError]:
        """
        Delete a contact.

        Without cascade, a contact referenced by any interaction is left
        untouched and a PendingConfirmation with the counts is returned.
        With cascade, solo interactions are deleted and the contact is
        stripped from group interactions, which are kept.

        A locked caller cannot delete a contact that appears in any
        interaction hidden from it; that fails as not found.
        """
        unlocked = self._unlocked(private_key)
        contacts = self.store.read_contacts()
        interactions = self.store.read_interactions()

        contact = self._resolve(visible_contacts(contacts, unlocked), contact_id, name)
        if isinstance(contact, OperationError):
            return contact

        related = [i for i in interactions if contact.id in i.contact_ids]
        if not unlocked:
            contacts_by_id = index_contacts(contacts)
            if any(is_interaction_private(i, contacts_by_id) for i in related):
                logger.warning(f"Refused locked delete of contact {contact.id}: hidden related interactions")
                return not_found(f"Contact not found: {contact_id or name}")

        solo = [i for i in related if not i.is_group]
        group = [i for i in related if i.is_group]

        # Nothing may be mutated before this check
        if related and not cascade:
            parts = []
            if solo:
                parts.append(f"{len(solo)} solo")
            if group:
                parts.append(f"{len(group)} group")
            logger.warning(f"Refused delete of contact {contact.id}: {len(related)} related interaction(s)")
            return PendingConfirmation(
                message=(
                    f'Contact "{contact.name}" has {len(related)} interaction(s) ({", ".join(parts)}). '
                    "Solo interactions will be deleted; group interactions will have this contact "
                    "removed but preserved. Set deleteInteractions: true to proceed."
                ),
                contact=contact,
                solo_interaction_count=len(solo),
                group_interaction_count=len(group),
            )

        remaining_contacts = [c for c in contacts if c.id != contact.id]
        self.store.write_contacts(remaining_contacts)

        affected = [contact.id]
        remaining_interactions: list[Interaction] = interactions
        if related:
            solo_ids = {i.id for i in solo}
            remaining_interactions = [i for i in interactions if i.id not in solo_ids]
            now = utc_now()
            for interaction in group:
                interaction.contact_ids = [cid for cid in interaction.contact_ids if cid != contact.id]
                interaction.updated_at = now
                affected.extend(interaction.contact_ids)
            self.store.write_interactions(remaining_interactions)

        logger.info(
            f"Deleted contact {contact.id}: {len(solo)} solo interaction(s) deleted, "
            f"{len(group)} group interaction(s) updated"
        )

        rebuild_contact_summaries(
            self.store, affected, contacts=remaining_contacts, interactions=remaining_interactions
        )
        return DeletedContact(
            contact=contact,
            deleted_interaction_count=len(solo),
            updated_group_interaction_count=len(group),
        )

"""
Structured results returned by CRM operations.

Domain outcomes (not found, validation failures, duplicate warnings,
blocked deletes) are values, not exceptions, so a caller can inspect them
before retrying with an explicit override.
"""
from dataclasses import dataclass, field
from typing import Optional

from api.services.crm_models import Contact, Interaction

# Error codes
ERROR_NOT_FOUND = "not_found"
ERROR_VALIDATION = "validation_error"
ERROR_REFERENCE = "reference_error"
ERROR_KEY_MISMATCH = "key_mismatch"


@dataclass
class OperationError:
    """
    A failed operation.

    not_found is also used for records hidden by privacy, so callers cannot
    tell a locked record from a missing one.
    """

    code: str
    message: str

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


def not_found(message: str) -> OperationError:
    return OperationError(ERROR_NOT_FOUND, message)


def validation_error(message: str) -> OperationError:
    return OperationError(ERROR_VALIDATION, message)


def reference_error(message: str) -> OperationError:
    return OperationError(ERROR_REFERENCE, message)


@dataclass
class DuplicateWarning:
    """Possible duplicate; nothing was written. Retry with the override flag to create anyway."""

    message: str
    matches: list[dict]
    match_field: str = "matches"

    def to_dict(self) -> dict:
        return {"warning": self.message, self.match_field: self.matches}


@dataclass
class PendingConfirmation:
    """Contact delete blocked by referencing interactions; nothing was written."""

    message: str
    contact: Contact
    solo_interaction_count: int
    group_interaction_count: int

    @property
    def interaction_count(self) -> int:
        return self.solo_interaction_count + self.group_interaction_count

    def to_dict(self) -> dict:
        return {
            "warning": self.message,
            "contact": self.contact.to_brief(),
            "interactionCount": self.interaction_count,
            "soloInteractionCount": self.solo_interaction_count,
            "groupInteractionCount": self.group_interaction_count,
        }


@dataclass
class InteractionView:
    """An interaction as shown to a caller, with participants already redacted."""

    interaction: Interaction
    contact_ids: list[str]
    participant_names: list[str]

    @property
    def participant_count(self) -> int:
        return len(self.contact_ids)

    def to_dict(self) -> dict:
        data = self.interaction.to_dict()
        data["contactIds"] = list(self.contact_ids)
        data["participantNames"] = list(self.participant_names)
        data["participantCount"] = self.participant_count
        return data


@dataclass
class ContactDetail:
    """A contact plus its interaction history, newest first."""

    contact: Contact
    interactions: list[InteractionView] = field(default_factory=list)

    @property
    def interaction_count(self) -> int:
        return len(self.interactions)

    def to_dict(self) -> dict:
        return {
            "contact": self.contact.to_dict(),
            "interactions": [view.to_dict() for view in self.interactions],
            "interactionCount": self.interaction_count,
        }


@dataclass
class DeletedContact:
    contact: Contact
    deleted_interaction_count: int = 0
    updated_group_interaction_count: int = 0

    def to_dict(self) -> dict:
        return {
            "deleted": self.contact.to_brief(),
            "deletedInteractionCount": self.deleted_interaction_count,
            "updatedGroupInteractionCount": self.updated_group_interaction_count,
        }


@dataclass
class LoggedInteraction:
    interaction: Interaction
    participant_names: list[str]

    def to_dict(self) -> dict:
        return {
            "logged": self.interaction.to_dict(),
            "participantNames": list(self.participant_names),
            "participantCount": len(self.interaction.contact_ids),
        }


@dataclass
class PrivacyStatus:
    """Result of manage_privacy (status, or a successful set_key)."""

    key_set: bool
    private_contact_count: int = 0
    private_interaction_count: int = 0
    message: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "keySet": self.key_set,
            "privateContactCount": self.private_contact_count,
            "privateInteractionCount": self.private_interaction_count,
        }
        if self.message:
            data["message"] = self.message
        return data

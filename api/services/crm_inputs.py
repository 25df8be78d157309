"""
Closed input types for CRM mutations.

Each mutable field has exactly one optional slot; unknown fields are
rejected when the model is built, so a caller cannot inject arbitrary
attributes into stored records. Models accept both snake_case and the
camelCase names used on the wire (howWeMet, contactIds, ...).
"""
from datetime import datetime
from typing import ClassVar, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

from api.services.crm_models import VALID_INTERACTION_TYPES


def validate_date_string(value: Optional[str]) -> Optional[str]:
    """Require a calendar day in YYYY-MM-DD form."""
    if value is None:
        return value
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise ValueError(f"Date must be YYYY-MM-DD, got {value!r}")
    return value


def validate_interaction_type(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    if value not in VALID_INTERACTION_TYPES:
        raise ValueError(
            f"Unknown interaction type {value!r}; expected one of {', '.join(VALID_INTERACTION_TYPES)}"
        )
    return value


class CrmInput(BaseModel):
    """Base for all CRM input models."""

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def changes(self) -> dict:
        """Fields the caller actually supplied, keyed by python name."""
        return self.model_dump(exclude_unset=True)


class PatchInput(CrmInput):
    """A patch: every field optional, only explicitly-set fields apply."""

    # Fields that may be explicitly cleared by passing null
    NULLABLE_FIELDS: ClassVar[frozenset] = frozenset()

    @model_validator(mode="after")
    def reject_null_for_required_fields(self):
        for name in self.model_fields_set:
            if getattr(self, name) is None and name not in self.NULLABLE_FIELDS:
                raise ValueError(f"Field '{name}' cannot be cleared")
        return self


class NewContact(CrmInput):
    """Fields for add_contact. The name token rule is checked by the service."""

    name: str
    nickname: Optional[str] = None
    company: Optional[str] = None
    role: Optional[str] = None
    how_we_met: Optional[str] = None
    tags: list[str] = []
    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin: Optional[str] = None
    notes: list[str] = []
    expertise: list[str] = []
    private: bool = False


class ContactPatch(PatchInput):
    """Allowed update_contact fields. email/phone/linkedin land in contactInfo."""

    NULLABLE_FIELDS: ClassVar[frozenset] = frozenset(
        {"nickname", "company", "role", "how_we_met", "email", "phone", "linkedin"}
    )

    name: Optional[str] = None
    nickname: Optional[str] = None
    company: Optional[str] = None
    role: Optional[str] = None
    how_we_met: Optional[str] = None
    tags: Optional[list[str]] = None
    notes: Optional[list[str]] = None
    expertise: Optional[list[str]] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin: Optional[str] = None
    private: Optional[bool] = None


class NewInteraction(CrmInput):
    """
    Fields for log_interaction.

    Participants come from one of the four participant slots;
    precedence is contact_ids > contact_names > contact_id > contact_name.
    """

    contact_ids: Optional[list[str]] = None
    contact_names: Optional[list[str]] = None
    contact_id: Optional[str] = None
    contact_name: Optional[str] = None
    summary: str
    date: Optional[str] = None
    type: Optional[str] = None
    topics: list[str] = []
    mentioned_next_steps: Optional[str] = None
    location: Optional[str] = None
    private: bool = False

    @field_validator("date")
    @classmethod
    def check_date(cls, value: Optional[str]) -> Optional[str]:
        return validate_date_string(value)

    @field_validator("type")
    @classmethod
    def check_type(cls, value: Optional[str]) -> Optional[str]:
        return validate_interaction_type(value)


class InteractionPatch(PatchInput):
    """Allowed edit_interaction fields, including the participant list."""

    NULLABLE_FIELDS: ClassVar[frozenset] = frozenset({"mentioned_next_steps", "location"})

    summary: Optional[str] = None
    date: Optional[str] = None
    type: Optional[str] = None
    topics: Optional[list[str]] = None
    mentioned_next_steps: Optional[str] = None
    location: Optional[str] = None
    contact_ids: Optional[list[str]] = None
    private: Optional[bool] = None

    @field_validator("date")
    @classmethod
    def check_date(cls, value: Optional[str]) -> Optional[str]:
        return validate_date_string(value)

    @field_validator("type")
    @classmethod
    def check_type(cls, value: Optional[str]) -> Optional[str]:
        return validate_interaction_type(value)

    @field_validator("contact_ids")
    @classmethod
    def require_participants(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        if value is not None and not value:
            raise ValueError("An interaction needs at least one participant")
        return value

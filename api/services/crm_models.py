"""
Record types for the personal CRM.

Contacts and interactions are the source of truth. ContactSummary is a
derived index entry that can be recomputed from them at any time.
CrmConfig holds the privacy passphrase.

Records serialize to the camelCase JSON documents used on disk
(contacts.json, interactions.json, contact-summaries.json, config.json).
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from config.crm_config import INTERACTION_TYPES

logger = logging.getLogger(__name__)

VALID_INTERACTION_TYPES = INTERACTION_TYPES


def _make_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure datetime is timezone-aware (UTC if naive)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO timestamp string ("Z" suffix allowed)."""
    if value is None or isinstance(value, datetime):
        return _make_aware(value)
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return _make_aware(datetime.fromisoformat(value))


def _format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_contact_id() -> str:
    return f"c_{uuid.uuid4().hex[:12]}"


def generate_interaction_id() -> str:
    return f"i_{uuid.uuid4().hex[:12]}"


def _unique(values) -> list[str]:
    """De-duplicate while keeping first-seen order."""
    return list(dict.fromkeys(values))


@dataclass
class ContactInfo:
    """Optional ways to reach a contact."""

    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin: Optional[str] = None

    def to_dict(self) -> dict:
        return {"email": self.email, "phone": self.phone, "linkedin": self.linkedin}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ContactInfo":
        data = data or {}
        return cls(
            email=data.get("email"),
            phone=data.get("phone"),
            linkedin=data.get("linkedin"),
        )


@dataclass
class Contact:
    """
    A person the user keeps in touch with.

    The name always has at least two whitespace-separated words.
    Private contacts are invisible unless the caller supplies the privacy key.
    """

    id: str = field(default_factory=generate_contact_id)
    name: str = ""
    nickname: Optional[str] = None
    company: Optional[str] = None
    role: Optional[str] = None
    how_we_met: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    contact_info: ContactInfo = field(default_factory=ContactInfo)
    notes: list[str] = field(default_factory=list)  # Personal facts, oldest first
    expertise: list[str] = field(default_factory=list)
    private: bool = False
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        """Convert to dict for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "nickname": self.nickname,
            "company": self.company,
            "role": self.role,
            "howWeMet": self.how_we_met,
            "tags": list(self.tags),
            "contactInfo": self.contact_info.to_dict(),
            "notes": list(self.notes),
            "expertise": list(self.expertise),
            "private": self.private,
            "createdAt": _format_timestamp(self.created_at),
            "updatedAt": _format_timestamp(self.updated_at),
        }

    def to_brief(self) -> dict:
        """Short projection used in search results and warnings."""
        return {
            "id": self.id,
            "name": self.name,
            "nickname": self.nickname,
            "company": self.company,
            "role": self.role,
            "tags": list(self.tags),
            "expertise": list(self.expertise),
            "notes": list(self.notes),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Contact":
        """Create Contact from a stored document entry."""
        created_at = _parse_timestamp(data.get("createdAt")) or utc_now()
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            nickname=data.get("nickname"),
            company=data.get("company"),
            role=data.get("role"),
            how_we_met=data.get("howWeMet"),
            tags=list(data.get("tags") or []),
            contact_info=ContactInfo.from_dict(data.get("contactInfo")),
            notes=list(data.get("notes") or []),
            expertise=list(data.get("expertise") or []),
            private=data.get("private") is True,
            created_at=created_at,
            updated_at=_parse_timestamp(data.get("updatedAt")) or created_at,
        )


@dataclass
class Interaction:
    """
    A logged event between the user and one or more contacts.

    contact_ids is the participant set: non-empty, no repeats.
    date is a YYYY-MM-DD string, so string order is chronological order.
    """

    id: str = field(default_factory=generate_interaction_id)
    contact_ids: list[str] = field(default_factory=list)
    date: str = ""
    type: str = "catch-up"
    summary: str = ""
    topics: list[str] = field(default_factory=list)
    mentioned_next_steps: Optional[str] = None
    location: Optional[str] = None
    private: bool = False
    created_at: datetime = field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    @property
    def is_group(self) -> bool:
        return len(self.contact_ids) > 1

    def to_dict(self) -> dict:
        """Convert to dict for JSON serialization (always the list shape)."""
        data = {
            "id": self.id,
            "contactIds": list(self.contact_ids),
            "date": self.date,
            "type": self.type,
            "summary": self.summary,
            "topics": list(self.topics),
            "mentionedNextSteps": self.mentioned_next_steps,
            "location": self.location,
            "private": self.private,
            "createdAt": _format_timestamp(self.created_at),
        }
        if self.updated_at:
            data["updatedAt"] = _format_timestamp(self.updated_at)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Interaction":
        """
        Create Interaction from a stored document entry.

        Accepts the legacy single-participant shape ({"contactId": "c_..."})
        as well as the current list shape.
        """
        contact_ids = data.get("contactIds")
        if contact_ids is None:
            legacy_id = data.get("contactId")
            contact_ids = [legacy_id] if legacy_id else []
        return cls(
            id=data["id"],
            contact_ids=_unique(contact_ids),
            date=data.get("date", ""),
            type=data.get("type") or "other",
            summary=data.get("summary") or "",
            topics=list(data.get("topics") or []),
            mentioned_next_steps=data.get("mentionedNextSteps"),
            location=data.get("location"),
            private=data.get("private") is True,
            created_at=_parse_timestamp(data.get("createdAt")) or utc_now(),
            updated_at=_parse_timestamp(data.get("updatedAt")),
        )


@dataclass
class ContactSummary:
    """
    Derived per-contact index entry. Never edited by hand.

    Exists only for non-private contacts; see contact_summary.build_contact_summary.
    """

    id: str
    name: str
    company: Optional[str] = None
    role: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    expertise: list[str] = field(default_factory=list)
    interaction_count: int = 0
    last_interaction: Optional[str] = None
    first_interaction: Optional[str] = None
    top_topics: list[str] = field(default_factory=list)
    locations: list[str] = field(default_factory=list)
    recent_summary: str = ""
    mentioned_next_steps: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "company": self.company,
            "role": self.role,
            "tags": list(self.tags),
            "expertise": list(self.expertise),
            "interactionCount": self.interaction_count,
            "lastInteraction": self.last_interaction,
            "firstInteraction": self.first_interaction,
            "topTopics": list(self.top_topics),
            "locations": list(self.locations),
            "recentSummary": self.recent_summary,
            "mentionedNextSteps": list(self.mentioned_next_steps),
            "notes": list(self.notes),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ContactSummary":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            company=data.get("company"),
            role=data.get("role"),
            tags=list(data.get("tags") or []),
            expertise=list(data.get("expertise") or []),
            interaction_count=data.get("interactionCount", 0),
            last_interaction=data.get("lastInteraction"),
            first_interaction=data.get("firstInteraction"),
            top_topics=list(data.get("topTopics") or []),
            locations=list(data.get("locations") or []),
            recent_summary=data.get("recentSummary") or "",
            mentioned_next_steps=list(data.get("mentionedNextSteps") or []),
            notes=list(data.get("notes") or []),
        )


@dataclass
class CrmConfig:
    """Process-wide config. An empty private_key means nothing can be unlocked."""

    private_key: str = ""

    @property
    def key_set(self) -> bool:
        return bool(self.private_key)

    def to_dict(self) -> dict:
        return {"privateKey": self.private_key}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "CrmConfig":
        data = data or {}
        return cls(private_key=data.get("privateKey") or "")

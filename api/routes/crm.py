"""
CRM API endpoints for the personal CRM.

Exposes contact and interaction operations plus privacy key management.
The privacy passphrase is passed per request in the X-CRM-Private-Key header.
Warnings (possible duplicates, blocked deletes) come back as 200 responses
with a "warning" key; nothing is written in that case.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from api.services.contacts import ContactService
from api.services.crm_inputs import (
    ContactPatch,
    CrmInput,
    InteractionPatch,
    NewContact,
    NewInteraction,
)
from api.services.crm_results import (
    ERROR_KEY_MISMATCH,
    ERROR_NOT_FOUND,
    ERROR_REFERENCE,
    ERROR_VALIDATION,
    DuplicateWarning,
    OperationError,
)
from api.services.crm_store import CrmStore, get_crm_store
from api.services.interactions import InteractionService
from api.services.privacy import manage_privacy
from config.crm_config import ContactConfig, ListingConfig

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/crm", tags=["crm"])

# Hidden records map to 404 like missing ones, never 403
STATUS_BY_ERROR_CODE = {
    ERROR_NOT_FOUND: 404,
    ERROR_VALIDATION: 400,
    ERROR_REFERENCE: 400,
    ERROR_KEY_MISMATCH: 403,
}


def get_store() -> CrmStore:
    """Store dependency (overridden in tests)."""
    return get_crm_store()


def _check(result):
    """Raise HTTPException for an OperationError, pass anything else through."""
    if isinstance(result, OperationError):
        raise HTTPException(
            status_code=STATUS_BY_ERROR_CODE.get(result.code, 400),
            detail=result.to_dict(),
        )
    return result


# ============================================================================
# Request Models
# ============================================================================


class AddContactRequest(NewContact):
    """Request body for add_contact."""
    force_duplicate: bool = False


class UpdateContactRequest(CrmInput):
    """Request body for update_contact."""
    contact_id: Optional[str] = None
    name: Optional[str] = None
    updates: ContactPatch


class LogInteractionRequest(NewInteraction):
    """Request body for log_interaction."""
    force_create: bool = False


class EditInteractionRequest(CrmInput):
    """Request body for edit_interaction."""
    updates: InteractionPatch


class PrivacyRequest(CrmInput):
    """Request body for manage_privacy."""
    operation: str
    current_key: Optional[str] = None
    new_key: Optional[str] = None


# ============================================================================
# Contact Endpoints
# ============================================================================


@router.get("/contacts")
async def search_contacts(
    q: Optional[str] = Query(None, description="Free text across name, company, role, tags, expertise, notes"),
    tag: Optional[str] = Query(None, description="Exact tag"),
    company: Optional[str] = Query(None, description="Company substring"),
    expertise: Optional[str] = Query(None, description="Expertise substring"),
    limit: int = Query(ContactConfig.DEFAULT_SEARCH_LIMIT, ge=1, le=500),
    store: CrmStore = Depends(get_store),
    x_crm_private_key: Optional[str] = Header(None),
):
    """Search contacts. Private contacts are hidden unless unlocked."""
    contacts = ContactService(store).search(
        query=q,
        tag=tag,
        company=company,
        expertise=expertise,
        limit=limit,
        private_key=x_crm_private_key,
    )
    return {"count": len(contacts), "contacts": [c.to_brief() for c in contacts]}


@router.get("/contacts/lookup")
async def get_contact(
    contact_id: Optional[str] = Query(None, description="Exact contact ID"),
    name: Optional[str] = Query(None, description="Name or nickname (partial match)"),
    store: CrmStore = Depends(get_store),
    x_crm_private_key: Optional[str] = Header(None),
):
    """Get a contact with its interaction history."""
    detail = _check(ContactService(store).get(
        contact_id=contact_id, name=name, private_key=x_crm_private_key
    ))
    return detail.to_dict()


@router.post("/contacts")
async def add_contact(
    request: AddContactRequest,
    store: CrmStore = Depends(get_store),
    x_crm_private_key: Optional[str] = Header(None),
):
    """Add a contact, or return a duplicate warning."""
    new_contact = NewContact(**request.model_dump(exclude={"force_duplicate"}))
    result = _check(ContactService(store).add(
        new_contact,
        force_duplicate=request.force_duplicate,
        private_key=x_crm_private_key,
    ))
    if isinstance(result, DuplicateWarning):
        return result.to_dict()
    return {"created": result.to_dict()}


@router.patch("/contacts")
async def update_contact(
    request: UpdateContactRequest,
    store: CrmStore = Depends(get_store),
    x_crm_private_key: Optional[str] = Header(None),
):
    """Update contact fields."""
    contact = _check(ContactService(store).update(
        request.updates,
        contact_id=request.contact_id,
        name=request.name,
        private_key=x_crm_private_key,
    ))
    return {"updated": contact.to_dict()}


@router.delete("/contacts")
async def delete_contact(
    contact_id: Optional[str] = Query(None, description="Exact contact ID"),
    name: Optional[str] = Query(None, description="Name or nickname (partial match)"),
    cascade: bool = Query(False, description="Also remove/strip the contact's interactions"),
    store: CrmStore = Depends(get_store),
    x_crm_private_key: Optional[str] = Header(None),
):
    """Delete a contact. Without cascade, a referenced contact is left untouched."""
    result = _check(ContactService(store).delete(
        contact_id=contact_id,
        name=name,
        cascade=cascade,
        private_key=x_crm_private_key,
    ))
    return result.to_dict()


# ============================================================================
# Interaction Endpoints
# ============================================================================


@router.post("/interactions")
async def log_interaction(
    request: LogInteractionRequest,
    store: CrmStore = Depends(get_store),
    x_crm_private_key: Optional[str] = Header(None),
):
    """Log an interaction with one or more contacts, or return a duplicate warning."""
    new_interaction = NewInteraction(**request.model_dump(exclude={"force_create"}))
    result = _check(InteractionService(store).log(
        new_interaction,
        force_create=request.force_create,
        private_key=x_crm_private_key,
    ))
    return result.to_dict()


@router.get("/interactions/recent")
async def get_recent_interactions(
    contact_id: Optional[str] = Query(None),
    contact_name: Optional[str] = Query(None),
    since: Optional[str] = Query(None, description="Minimum date (YYYY-MM-DD)"),
    type: Optional[str] = Query(None, description="Interaction type"),
    limit: int = Query(ListingConfig.DEFAULT_RECENT_LIMIT, ge=1, le=500),
    store: CrmStore = Depends(get_store),
    x_crm_private_key: Optional[str] = Header(None),
):
    """Recent interactions, newest first."""
    views = _check(InteractionService(store).list_recent(
        contact_id=contact_id,
        contact_name=contact_name,
        since=since,
        interaction_type=type,
        limit=limit,
        private_key=x_crm_private_key,
    ))
    return {"count": len(views), "interactions": [v.to_dict() for v in views]}


@router.patch("/interactions/{interaction_id}")
async def edit_interaction(
    interaction_id: str,
    request: EditInteractionRequest,
    store: CrmStore = Depends(get_store),
    x_crm_private_key: Optional[str] = Header(None),
):
    """Edit interaction fields, including its participants."""
    interaction = _check(InteractionService(store).edit(
        interaction_id, request.updates, private_key=x_crm_private_key
    ))
    return {"updated": interaction.to_dict()}


@router.delete("/interactions/{interaction_id}")
async def delete_interaction(
    interaction_id: str,
    store: CrmStore = Depends(get_store),
    x_crm_private_key: Optional[str] = Header(None),
):
    """Delete an interaction."""
    interaction = _check(InteractionService(store).delete(
        interaction_id, private_key=x_crm_private_key
    ))
    return {"deleted": interaction.to_dict()}


@router.get("/next-steps")
async def get_mentioned_next_steps(
    limit: int = Query(ListingConfig.DEFAULT_NEXT_STEPS_LIMIT, ge=1, le=500),
    store: CrmStore = Depends(get_store),
    x_crm_private_key: Optional[str] = Header(None),
):
    """Next steps mentioned in past interactions, newest first."""
    views = InteractionService(store).list_mentioned_next_steps(
        limit=limit, private_key=x_crm_private_key
    )
    return {"count": len(views), "mentionedNextSteps": [v.to_dict() for v in views]}


# ============================================================================
# Privacy
# ============================================================================


@router.post("/privacy")
async def privacy(
    request: PrivacyRequest,
    store: CrmStore = Depends(get_store),
):
    """Set the privacy passphrase or report privacy status."""
    result = _check(manage_privacy(
        store,
        request.operation,
        current_key=request.current_key,
        new_key=request.new_key,
    ))
    return result.to_dict()

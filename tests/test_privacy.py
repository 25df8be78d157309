"""
Tests for the privacy filter and privacy key management.
"""
import pytest

from api.services.crm_models import Contact, CrmConfig, Interaction
from api.services.crm_results import ERROR_KEY_MISMATCH, ERROR_VALIDATION, OperationError, PrivacyStatus
from api.services.privacy import (
    UNKNOWN_PARTICIPANT,
    index_contacts,
    is_interaction_private,
    is_unlocked,
    manage_privacy,
    project_interaction,
    redact_participants,
    visible_contacts,
    visible_interactions,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def people():
    alice = Contact(name="Alice Testington")
    zara = Contact(name="Zara Quinn", private=True)
    return alice, zara


class TestUnlock:
    """Tests for is_unlocked."""

    def test_matching_key_unlocks(self):
        assert is_unlocked("open sesame", CrmConfig(private_key="open sesame"))

    def test_wrong_key_does_not_unlock(self):
        assert not is_unlocked("guess", CrmConfig(private_key="open sesame"))

    def test_missing_key_does_not_unlock(self):
        assert not is_unlocked(None, CrmConfig(private_key="open sesame"))

    def test_unconfigured_key_never_unlocks(self):
        """An empty configured key cannot be matched, not even by an empty key."""
        assert not is_unlocked("", CrmConfig(private_key=""))
        assert not is_unlocked("anything", CrmConfig(private_key=""))


class TestVisibility:
    """Tests for listing-level filtering."""

    def test_private_contacts_hidden_when_locked(self, people):
        alice, zara = people
        assert visible_contacts([alice, zara], unlocked=False) == [alice]
        assert visible_contacts([alice, zara], unlocked=True) == [alice, zara]

    def test_interaction_with_private_participant_is_private(self, people):
        alice, zara = people
        by_id = index_contacts([alice, zara])
        group = Interaction(contact_ids=[alice.id, zara.id], date="2026-02-01")
        solo = Interaction(contact_ids=[alice.id], date="2026-02-01")
        flagged = Interaction(contact_ids=[alice.id], date="2026-02-01", private=True)

        assert is_interaction_private(group, by_id)
        assert not is_interaction_private(solo, by_id)
        assert is_interaction_private(flagged, by_id)

        assert visible_interactions([group, solo, flagged], by_id, unlocked=False) == [solo]
        assert len(visible_interactions([group, solo, flagged], by_id, unlocked=True)) == 3

    def test_unknown_participant_is_not_private(self, people):
        alice, _ = people
        interaction = Interaction(contact_ids=[alice.id, "c_deleted00000"], date="2026-02-01")
        assert not is_interaction_private(interaction, index_contacts([alice]))


class TestRedaction:
    """Tests for detail-level participant redaction."""

    def test_private_participants_stripped_when_locked(self, people):
        alice, zara = people
        by_id = index_contacts([alice, zara])
        assert redact_participants([alice.id, zara.id], by_id, unlocked=False) == [alice.id]
        assert redact_participants([alice.id, zara.id], by_id, unlocked=True) == [alice.id, zara.id]

    def test_projection_names_and_count(self, people):
        alice, zara = people
        by_id = index_contacts([alice, zara])
        interaction = Interaction(contact_ids=[alice.id, zara.id, "c_gone00000000"], date="2026-02-01")

        view = project_interaction(interaction, by_id, unlocked=False)
        data = view.to_dict()

        assert data["contactIds"] == [alice.id, "c_gone00000000"]
        assert data["participantNames"] == ["Alice Testington", UNKNOWN_PARTICIPANT]
        assert data["participantCount"] == 2
        # The stored record is untouched
        assert interaction.contact_ids == [alice.id, zara.id, "c_gone00000000"]


class TestManagePrivacy:
    """Tests for set_key and status."""

    def test_set_first_key(self, store):
        result = manage_privacy(store, "set_key", new_key="first")
        assert isinstance(result, PrivacyStatus)
        assert store.read_config().private_key == "first"

    def test_change_key_requires_current_key(self, store):
        manage_privacy(store, "set_key", new_key="first")

        result = manage_privacy(store, "set_key", current_key="wrong", new_key="second")

        assert isinstance(result, OperationError)
        assert result.code == ERROR_KEY_MISMATCH
        assert store.read_config().private_key == "first"

    def test_change_key_with_current_key(self, store):
        manage_privacy(store, "set_key", new_key="first")
        result = manage_privacy(store, "set_key", current_key="first", new_key="second")
        assert isinstance(result, PrivacyStatus)
        assert store.read_config().private_key == "second"

    def test_set_key_requires_new_key(self, store):
        result = manage_privacy(store, "set_key", new_key="")
        assert result.code == ERROR_VALIDATION
        assert store.read_config().key_set is False

    def test_status_counts(self, store, people, seed):
        alice, zara = people
        seed(store, [alice, zara], [
            Interaction(contact_ids=[alice.id], date="2026-01-01"),
            Interaction(contact_ids=[alice.id, zara.id], date="2026-01-02"),
            Interaction(contact_ids=[alice.id], date="2026-01-03", private=True),
        ])

        status = manage_privacy(store, "status")

        assert status.to_dict() == {
            "keySet": False,
            "privateContactCount": 1,
            "privateInteractionCount": 2,
        }

    def test_unknown_operation(self, store):
        result = manage_privacy(store, "rotate")
        assert result.code == ERROR_VALIDATION

"""
Tests for the maintenance scripts.
"""
import json

import pytest

from api.services.crm_models import Contact, Interaction
from api.services.crm_store import INTERACTIONS, SUMMARIES
from scripts.migrate_interactions import BACKUP_SUFFIX, migrate_interactions
from scripts.rebuild_summaries import rebuild_summaries

pytestmark = pytest.mark.unit


class TestRebuildSummaries:
    """Tests for rebuild_summaries."""

    @pytest.fixture
    def seeded(self, store, seed):
        alice = Contact(name="Alice Testington")
        bob = Contact(name="Bob Testington")
        zara = Contact(name="Zara Quinn", private=True)
        seed(store, [alice, bob, zara], [
            Interaction(contact_ids=[alice.id, bob.id], date="2026-02-25", summary="Dinner"),
        ])
        return alice, bob, zara

    def test_dry_run_writes_nothing(self, store, seeded):
        stats = rebuild_summaries(dry_run=True, store=store)

        assert stats['contacts'] == 3
        assert stats['summaries'] == 2
        assert stats['added'] == 2
        assert not store.path_for(SUMMARIES).exists()

    def test_execute_writes_and_second_run_is_unchanged(self, store, seeded):
        rebuild_summaries(dry_run=False, store=store)
        assert {s.interaction_count for s in store.read_summaries()} == {1}

        stats = rebuild_summaries(dry_run=False, store=store)

        assert stats['unchanged'] == 2
        assert stats['added'] == 0
        assert stats['updated'] == 0

    def test_stale_summaries_counted_as_removed(self, store, seeded):
        alice, bob, zara = seeded
        rebuild_summaries(dry_run=False, store=store)
        store.write_contacts([alice])

        stats = rebuild_summaries(dry_run=False, store=store)

        assert stats['removed'] == 1
        assert [s.id for s in store.read_summaries()] == [alice.id]


class TestMigrateInteractions:
    """Tests for migrate_interactions."""

    LEGACY = [
        {"id": "i_legacy000001", "contactId": "c_alice0000000", "date": "2026-01-01",
         "type": "call", "summary": "Old shape", "topics": []},
        {"id": "i_current00001", "contactIds": ["c_bob000000000", "c_bob000000000"], "date": "2026-01-02",
         "type": "meeting", "summary": "Repeated id", "topics": []},
        {"id": "i_current00002", "contactIds": ["c_bob000000000"], "date": "2026-01-03",
         "type": "meeting", "summary": "Already fine", "topics": []},
    ]

    def test_dry_run(self, store):
        store.write_collection(INTERACTIONS, self.LEGACY)
        before = store.path_for(INTERACTIONS).read_bytes()

        stats = migrate_interactions(dry_run=True, store=store)

        assert stats == {'total': 3, 'migrated': 2, 'already_migrated': 1, 'without_participants': 0}
        assert store.path_for(INTERACTIONS).read_bytes() == before

    def test_execute_rewrites_with_backup(self, store):
        store.write_collection(INTERACTIONS, self.LEGACY)
        source = store.path_for(INTERACTIONS)
        original = source.read_bytes()

        migrate_interactions(dry_run=False, store=store)

        backup = source.with_name(source.name + BACKUP_SUFFIX)
        assert backup.read_bytes() == original
        raw = json.loads(source.read_text())
        assert all("contactId" not in record for record in raw)
        assert [record["contactIds"] for record in raw] == [
            ["c_alice0000000"], ["c_bob000000000"], ["c_bob000000000"],
        ]

    def test_nothing_to_do(self, store):
        store.write_collection(INTERACTIONS, self.LEGACY[2:])

        stats = migrate_interactions(dry_run=False, store=store)

        assert stats['migrated'] == 0
        source = store.path_for(INTERACTIONS)
        assert not source.with_name(source.name + BACKUP_SUFFIX).exists()

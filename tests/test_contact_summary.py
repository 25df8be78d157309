"""
Tests for derived contact summaries and the batched rebuild.
"""
import pytest

from api.services.contact_summary import (
    build_contact_summary,
    rank_topics,
    rebuild_all_summaries,
    rebuild_contact_summaries,
)
from api.services.crm_models import Contact, Interaction
from api.services.crm_store import SUMMARIES, InMemoryStore

pytestmark = pytest.mark.unit


class CountingStore(InMemoryStore):
    """In-memory store that counts collection reads and writes."""

    def __init__(self):
        super().__init__()
        self.reads: dict[str, int] = {}
        self.writes: dict[str, int] = {}

    def read_collection(self, name):
        self.reads[name] = self.reads.get(name, 0) + 1
        return super().read_collection(name)

    def write_collection(self, name, snapshot):
        self.writes[name] = self.writes.get(name, 0) + 1
        super().write_collection(name, snapshot)


@pytest.fixture
def trio():
    return (
        Contact(name="Alice Testington", company="Acme", tags=["work"]),
        Contact(name="Bob Testington"),
        Contact(name="Cara Testington"),
    )


class TestBuildContactSummary:
    """Tests for the pure summary computation."""

    def test_missing_contact_has_no_summary(self, trio):
        assert build_contact_summary("c_missing00000", list(trio), []) is None

    def test_private_contact_has_no_summary(self):
        zara = Contact(name="Zara Quinn", private=True)
        interaction = Interaction(contact_ids=[zara.id], date="2026-01-01")
        assert build_contact_summary(zara.id, [zara], [interaction]) is None

    def test_fields(self, trio):
        alice, bob, _ = trio
        interactions = [
            Interaction(contact_ids=[alice.id], date="2026-01-05", summary="First lunch",
                        location="Soho", topics=["ai"]),
            Interaction(contact_ids=[alice.id, bob.id], date="2026-02-10", summary="Group dinner",
                        location="Camden", topics=["ai", "music"], mentioned_next_steps="Send deck"),
            Interaction(contact_ids=[alice.id], date="2026-01-20", summary="Call",
                        location="Soho", mentioned_next_steps=""),
            Interaction(contact_ids=[bob.id], date="2026-03-01", summary="Not Alice"),
        ]

        summary = build_contact_summary(alice.id, list(trio), interactions)

        assert summary.interaction_count == 3
        assert summary.last_interaction == "2026-02-10"
        assert summary.first_interaction == "2026-01-05"
        assert summary.top_topics == ["ai", "music"]
        assert summary.locations == ["Camden", "Soho"]
        assert summary.recent_summary == (
            "2026-02-10: Group dinner. 2026-01-20: Call. 2026-01-05: First lunch"
        )
        assert summary.mentioned_next_steps == ["Send deck"]
        assert summary.company == "Acme"
        assert summary.tags == ["work"]

    def test_no_interactions(self, trio):
        summary = build_contact_summary(trio[0].id, list(trio), [])
        assert summary.interaction_count == 0
        assert summary.last_interaction is None
        assert summary.first_interaction is None
        assert summary.recent_summary == ""

    def test_recent_summary_truncates_and_limits(self, trio):
        alice = trio[0]
        long_text = "x" * 150
        interactions = [
            Interaction(contact_ids=[alice.id], date=f"2026-01-0{day}", summary=long_text)
            for day in range(1, 6)
        ]
        summary = build_contact_summary(alice.id, [alice], interactions)

        parts = summary.recent_summary.split(". ")
        assert len(parts) == 3
        assert parts[0] == "2026-01-05: " + "x" * 100

    def test_private_interactions_excluded(self, trio):
        """Flagged interactions and ones with a private co-participant do not count."""
        alice = trio[0]
        zara = Contact(name="Zara Quinn", private=True)
        interactions = [
            Interaction(contact_ids=[alice.id], date="2026-01-01"),
            Interaction(contact_ids=[alice.id], date="2026-01-02", private=True),
            Interaction(contact_ids=[alice.id, zara.id], date="2026-01-03"),
        ]
        summary = build_contact_summary(alice.id, [alice, zara], interactions)
        assert summary.interaction_count == 1
        assert summary.last_interaction == "2026-01-01"

    def test_idempotent(self, trio):
        alice, bob, _ = trio
        interactions = [
            Interaction(contact_ids=[alice.id, bob.id], date="2026-02-25", topics=["b", "a"]),
            Interaction(contact_ids=[alice.id], date="2026-02-25", topics=["a"]),
        ]
        first = build_contact_summary(alice.id, list(trio), interactions)
        second = build_contact_summary(alice.id, list(trio), interactions)
        assert first.to_dict() == second.to_dict()


class TestRankTopics:
    def test_at_most_five_by_descending_count(self):
        interactions = [
            Interaction(contact_ids=["c"], topics=["a", "b", "c", "d", "e", "f"]),
            Interaction(contact_ids=["c"], topics=["f", "e"]),
            Interaction(contact_ids=["c"], topics=["f"]),
        ]
        assert rank_topics(interactions) == ["f", "e", "a", "b", "c"]

    def test_ties_broken_alphabetically(self):
        interactions = [Interaction(contact_ids=["c"], topics=["zebra", "apple", "mango"])]
        assert rank_topics(interactions) == ["apple", "mango", "zebra"]


class TestRebuildContactSummaries:
    """Tests for the batched rebuild."""

    def test_one_read_and_one_write_of_summaries(self, trio):
        alice, bob, cara = trio
        store = CountingStore()
        store.write_contacts(list(trio))
        store.write_interactions([Interaction(contact_ids=[alice.id, bob.id, cara.id], date="2026-02-25")])
        store.writes.clear()

        updated, removed = rebuild_contact_summaries(store, [alice.id, bob.id, cara.id, alice.id])

        assert updated == [alice.id, bob.id, cara.id]
        assert removed == []
        assert store.reads[SUMMARIES] == 1
        assert store.writes == {SUMMARIES: 1}

    def test_passed_state_is_not_reread(self, trio):
        store = CountingStore()
        rebuild_contact_summaries(store, [trio[0].id], contacts=list(trio), interactions=[])
        assert store.reads == {SUMMARIES: 1}

    def test_empty_id_set_does_no_io(self):
        store = CountingStore()
        assert rebuild_contact_summaries(store, []) == ([], [])
        assert store.reads == {}
        assert store.writes == {}

    def test_replaces_in_place_and_removes_private(self, trio, memory_store):
        alice, bob, cara = trio
        memory_store.write_contacts(list(trio))
        rebuild_contact_summaries(memory_store, [alice.id, bob.id, cara.id])

        bob.private = True
        memory_store.write_contacts([alice, bob, cara])
        memory_store.write_interactions([Interaction(contact_ids=[alice.id], date="2026-02-01")])

        updated, removed = rebuild_contact_summaries(memory_store, [alice.id, bob.id])

        assert removed == [bob.id]
        ids = [s.id for s in memory_store.read_summaries()]
        assert ids == [alice.id, cara.id]
        assert memory_store.read_summaries()[0].interaction_count == 1

    def test_batched_rebuild_keeps_every_participant(self, trio, memory_store):
        """A group interaction leaves one summary per participant."""
        memory_store.write_contacts(list(trio))
        memory_store.write_interactions([
            Interaction(contact_ids=[c.id for c in trio], date="2026-02-25", summary="Dinner")
        ])

        rebuild_contact_summaries(memory_store, [c.id for c in trio])

        summaries = memory_store.read_summaries()
        assert sorted(s.id for s in summaries) == sorted(c.id for c in trio)
        assert all(s.interaction_count == 1 for s in summaries)

    def test_interleaved_per_contact_rebuilds_lose_updates(self, trio, memory_store):
        """Independent read-compute-write cycles that interleave keep only the last write."""
        contacts = list(trio)
        interactions = [Interaction(contact_ids=[c.id for c in trio], date="2026-02-25")]
        memory_store.write_contacts(contacts)
        memory_store.write_interactions(interactions)

        # Every cycle reads before any cycle writes
        snapshots = {c.id: memory_store.read_summaries() for c in contacts}
        for contact in contacts:
            entries = [s for s in snapshots[contact.id] if s.id != contact.id]
            entries.append(build_contact_summary(contact.id, contacts, interactions))
            memory_store.write_summaries(entries)

        assert [s.id for s in memory_store.read_summaries()] == [trio[2].id]


class TestRebuildAllSummaries:
    def test_drops_stale_entries(self, trio, memory_store):
        alice, bob, cara = trio
        memory_store.write_contacts([alice, bob, cara])
        rebuild_all_summaries(memory_store)

        cara.private = True
        memory_store.write_contacts([alice, cara])

        summaries = rebuild_all_summaries(memory_store)

        assert [s.id for s in summaries] == [alice.id]
        assert [s.id for s in memory_store.read_summaries()] == [alice.id]

    def test_without_write_only_computes(self, trio):
        """With write disabled the summaries are returned and nothing is stored."""
        store = CountingStore()
        alice, bob, cara = trio

        summaries = rebuild_all_summaries(store, contacts=[alice, bob], interactions=[], write=False)

        assert [s.id for s in summaries] == [alice.id, bob.id]
        assert store.writes == {}
        assert store.reads == {}

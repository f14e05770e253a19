"""Tests for the in-memory document store."""

from proanbud.lib.document_store import (
    SERVER_TIMESTAMP,
    MemoryDocumentStore,
    generate_push_id,
    paths_overlap,
)


class TestPaths:
    def test_overlap(self):
        assert paths_overlap("accounts/a/quotes", "accounts/a/quotes/q1")
        assert paths_overlap("accounts/a/quotes/q1", "accounts/a")
        assert not paths_overlap("accounts/a/quotes", "accounts/a/customers")
        assert not paths_overlap("accounts/a/quotes", "accounts/b/quotes")

    def test_push_ids_sort_by_time(self):
        assert generate_push_id(1000) < generate_push_id(2000)
        assert len(generate_push_id()) == 20


class TestMemoryDocumentStore:
    def test_write_and_read(self):
        store = MemoryDocumentStore()
        store.write("accounts/a/quotes/q1", {"amount": 5, "note": None})
        snap = store.read_all("accounts/a/quotes/q1")
        assert snap.exists
        assert snap.key == "q1"
        assert snap.value == {"amount": 5}

    def test_missing_path(self):
        snap = MemoryDocumentStore().read_all("accounts/a/quotes")
        assert snap.exists is False
        assert snap.value is None

    def test_server_timestamp_resolved(self):
        store = MemoryDocumentStore()
        store.write("accounts/a/profile", {"created_at": SERVER_TIMESTAMP})
        assert isinstance(store.read_all("accounts/a/profile").value["created_at"], int)

    def test_patch_merges_and_removes(self):
        store = MemoryDocumentStore({"accounts": {"a": {"customers": {"c1": {"name": "Ola", "notes": "x"}}}}})
        store.patch("accounts/a/customers/c1", {"phone": "123", "notes": None})
        assert store.read_all("accounts/a/customers/c1").value == {"name": "Ola", "phone": "123"}

    def test_remove_collapses_empty_parents(self):
        store = MemoryDocumentStore()
        store.write("accounts/a/quotes/q1", {"amount": 1})
        store.remove("accounts/a/quotes/q1")
        assert not store.read_all("accounts/a").exists

    def test_reads_are_copies(self):
        store = MemoryDocumentStore()
        store.write("accounts/a/quotes/q1", {"amount": 1})
        store.read_all("accounts/a/quotes/q1").value["amount"] = 99
        assert store.read_all("accounts/a/quotes/q1").value["amount"] == 1

    def test_subscribe_fires_immediately_and_on_change(self):
        store = MemoryDocumentStore()
        seen = []
        handle = store.subscribe("accounts/a/quotes", lambda snap: seen.append(snap.value))
        store.write("accounts/a/quotes/q1", {"amount": 1})
        store.write("accounts/a/customers/c1", {"name": "Ola"})
        assert seen == [None, {"q1": {"amount": 1}}]

        store.unsubscribe(handle)
        store.write("accounts/a/quotes/q2", {"amount": 2})
        assert len(seen) == 2
        assert store.subscription_count == 0

    def test_failing_subscriber_does_not_break_writer(self):
        store = MemoryDocumentStore()

        def broken(_snap):
            raise RuntimeError("listener bug")

        store.subscribe("accounts/a", broken)
        store.write("accounts/a/quotes/q1", {"amount": 1})
        assert store.read_all("accounts/a/quotes/q1").exists

    def test_ping(self):
        store = MemoryDocumentStore()
        assert store.ping()
        store.online = False
        assert not store.ping()

"""
Local store and dataset cache.
"""
import pytest

from srt_platform.portfolio import PortfolioFilter
from srt_platform.store import LocalStore, DatasetCache, DatasetRejected
from srt_platform.structure import StructureEditor


@pytest.fixture
def store(tmp_path):
    return LocalStore(tmp_path / "data")


class TestDatasetCache:
    def test_get_or_fetch(self):
        cache = DatasetCache()
        calls = []
        fetch = lambda: calls.append(1) or len(calls)
        assert cache.get_or_fetch("k", fetch) == 1
        assert cache.get_or_fetch("k", fetch) == 1
        assert cache.hits == 1 and cache.misses == 1

    def test_force_refresh(self):
        cache = DatasetCache()
        cache.get_or_fetch("k", lambda: "old")
        assert cache.get_or_fetch("k", lambda: "new", force_refresh=True) == "new"
        assert cache.get_or_fetch("k", lambda: "other") == "new"

    def test_invalidate(self):
        cache = DatasetCache()
        cache.get_or_fetch("aggregate:a:1", lambda: 1)
        cache.get_or_fetch("aggregate:a:2", lambda: 2)
        cache.get_or_fetch("dataset:a", lambda: 3)
        cache.invalidate_prefix("aggregate:a:")
        assert len(cache) == 1
        cache.invalidate("dataset:a")
        assert "dataset:a" not in cache
        cache.invalidate("missing")


class TestDatasets:
    def test_save_and_load(self, store, loan_tape):
        assert store.save_dataset("book", loan_tape) == []
        assert store.list_datasets() == ["book"]
        df = store.load_dataset("book")
        assert len(df) == 3
        assert (df["dataset_name"] == "book").all()

    def test_rejects_duplicate_ids(self, store, loan_tape):
        bad = loan_tape.copy()
        bad.loc[1, "loan_id"] = "C1"
        with pytest.raises(DatasetRejected) as exc:
            store.save_dataset("bad", bad)
        assert exc.value.issues[0].severity == "HARD"
        assert not store.has_dataset("bad")

    def test_soft_issues_returned(self, store, loan_tape):
        odd = loan_tape.copy()
        odd.loc[0, "pd"] = 1.5
        issues = store.save_dataset("odd", odd)
        assert [i.severity for i in issues] == ["SOFT"]

    def test_unknown_dataset(self, store):
        with pytest.raises(KeyError):
            store.load_dataset("nope")

    def test_aggregate_cached_and_invalidated(self, store, loan_tape):
        store.save_dataset("book", loan_tape)
        first = store.get_aggregate("book")
        assert store.get_aggregate("book") is first
        assert first.total_value == pytest.approx(100_000)

        store.save_dataset("book", loan_tape.iloc[:1])
        assert store.get_aggregate("book").total_value == pytest.approx(10_000)

    def test_filtered_aggregate_keyed_separately(self, store, loan_tape):
        store.save_dataset("book", loan_tape)
        full = store.get_aggregate("book")
        consumer = store.get_aggregate("book", PortfolioFilter(loan_type="consumer"))
        assert consumer.record_count == 2
        assert full.record_count == 3

    def test_names_kept_verbatim(self, store, loan_tape):
        store.save_dataset("Q3 Consumer", loan_tape)
        sid = StructureEditor("Deal", "Q3 Consumer").save(store)
        listed = store.list_datasets()
        assert listed == ["Q3 Consumer"]
        assert [s.id for s in store.list_structures(listed[0])] == [sid]
        assert (store.load_dataset("Q3 Consumer")["dataset_name"] == "Q3 Consumer").all()

    def test_similar_names_get_separate_files(self, store, loan_tape):
        store.save_dataset("a b", loan_tape)
        store.save_dataset("a_b", loan_tape.iloc[:1])
        assert store.list_datasets() == ["a b", "a_b"]
        assert store.get_aggregate("a b", force_refresh=True).record_count == 3
        assert store.get_aggregate("a_b", force_refresh=True).record_count == 1
        assert len(list(store.datasets_dir.glob("*.parquet"))) == 2

    def test_delete_leaves_similar_name_alone(self, store, loan_tape):
        store.save_dataset("a b", loan_tape)
        store.save_dataset("a_b", loan_tape.iloc[:1])
        keep = StructureEditor("Keep", "a b").save(store)
        StructureEditor("Drop", "a_b").save(store)

        assert store.delete_dataset("a_b") == 1
        assert store.list_datasets() == ["a b"]
        assert store.load_dataset("a b", force_refresh=True)["loan_id"].tolist() == ["C1", "C2", "T1"]
        assert [s.id for s in store.list_structures()] == [keep]

    def test_resave_reuses_file(self, store, loan_tape):
        store.save_dataset("Q3 Consumer", loan_tape)
        store.save_dataset("Q3 Consumer", loan_tape.iloc[:2])
        assert len(list(store.datasets_dir.glob("*.parquet"))) == 1
        assert store.get_aggregate("Q3 Consumer").record_count == 2

    def test_blank_name_rejected(self, store, loan_tape):
        with pytest.raises(ValueError):
            store.save_dataset("  ", loan_tape)


class TestStructures:
    def test_save_list_get(self, store, loan_tape):
        store.save_dataset("book", loan_tape)
        sid = StructureEditor("Deal", "book").save(store)
        assert [s.id for s in store.list_structures("book")] == [sid]
        assert store.list_structures("other") == []
        assert store.get_structure(sid).name == "Deal"

    def test_save_replaces_whole_record(self, store):
        editor = StructureEditor("Deal", "book")
        sid = editor.save(store)
        editor.name = "Deal v2"
        editor.update_tranche("1", "cost_bps", 175)
        assert editor.save(store) == sid
        saved = store.get_structure(sid)
        assert saved.name == "Deal v2"
        assert saved.tranches[0].cost_bps == 175
        assert len(store.list_structures()) == 1

    def test_delete_structure(self, store):
        sid = StructureEditor("Deal", "book").save(store)
        store.delete_structure(sid)
        assert store.list_structures() == []
        with pytest.raises(KeyError):
            store.get_structure(sid)
        with pytest.raises(KeyError):
            store.delete_structure(sid)

    def test_delete_dataset_cascades(self, store, loan_tape):
        store.save_dataset("book", loan_tape)
        StructureEditor("A", "book").save(store)
        StructureEditor("B", "book").save(store)
        keep = StructureEditor("C", "other").save(store)

        assert store.delete_dataset("book") == 2
        assert not store.has_dataset("book")
        assert [s.id for s in store.list_structures()] == [keep]

    def test_persists_across_instances(self, tmp_path, loan_tape):
        first = LocalStore(tmp_path)
        first.save_dataset("book", loan_tape)
        sid = StructureEditor("Deal", "book").save(first)

        second = LocalStore(tmp_path)
        assert second.list_datasets() == ["book"]
        assert second.get_structure(sid).dataset_name == "book"

    def test_failed_write_keeps_previous_structures(self, store, monkeypatch):
        sid = StructureEditor("Deal", "book").save(store)
        before = store.structures_path.read_text()

        def broken_dump(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr("srt_platform.store.json.dump", broken_dump)
        with pytest.raises(OSError):
            StructureEditor("Other", "book").save(store)
        monkeypatch.undo()

        assert store.structures_path.read_text() == before
        assert [s.id for s in LocalStore(store.root).list_structures()] == [sid]

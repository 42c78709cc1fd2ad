"""
Structure editor guard rails and save-time validation.
"""
import pytest
from pydantic import ValidationError

from srt_platform.config import StructureRules
from srt_platform.models import TrancheDefinition
from srt_platform.structure import (
    StructureEditor, InvalidStructure, TooManyTranches, TooFewTranches, default_tranches,
)
from srt_platform.validation import check_structure, hard_issues


def _tranches(*thicknesses):
    return [
        TrancheDefinition(id=str(i), name=f"T{i}", thickness_percent=th)
        for i, th in enumerate(thicknesses)
    ]


class FakeStore:
    def __init__(self):
        self.saved = {}

    def save_structure(self, structure):
        self.saved[structure.id] = structure
        return structure.id


class TestValidation:
    def test_sum_over_100_is_invalid(self):
        editor = StructureEditor("x", "demo", _tranches(50, 50, 1))
        assert not editor.is_valid()

    def test_thirds_are_valid(self):
        editor = StructureEditor("x", "demo", _tranches(33.33, 33.33, 33.34))
        assert editor.is_valid()

    def test_accumulated_rounding_is_tolerated(self):
        editor = StructureEditor("x", "demo", _tranches(*([10.0] * 7), 0.1 + 0.2, 29.7))
        assert abs(editor.total_thickness() - 100) < 1e-6
        assert editor.is_valid()

    def test_tranche_count_bounds(self):
        assert hard_issues(check_structure(_tranches(60, 40)))
        assert hard_issues(check_structure(_tranches(*([100 / 11] * 11))))

    def test_zero_thickness_is_soft(self):
        issues = check_structure(_tranches(60, 40, 0))
        assert not hard_issues(issues)
        assert any("zero thickness" in i.message for i in issues)

    def test_duplicate_names_are_soft(self):
        tranches = _tranches(50, 30, 20)
        tranches[1] = tranches[1].model_copy(update={"name": "t0"})
        issues = check_structure(tranches)
        assert not hard_issues(issues)
        assert any(i.field == "name" for i in issues)


class TestEditor:
    def test_default_template(self):
        editor = StructureEditor("New", "demo")
        assert [t.name for t in editor.tranches] == ["Senior", "Mezzanine", "First Loss"]
        assert editor.total_thickness() == pytest.approx(100)
        assert editor.is_valid()

    def test_template_is_fresh_each_time(self):
        first = default_tranches()
        first[0] = first[0].model_copy(update={"thickness_percent": 1})
        assert default_tranches()[0].thickness_percent == 70

    def test_add_tranche(self):
        editor = StructureEditor("New", "demo")
        added = editor.add_tranche()
        assert added.name == "Tranche 4"
        assert added.thickness_percent == 0
        assert len(editor.tranches) == 4

    def test_add_beyond_max(self):
        editor = StructureEditor("New", "demo", _tranches(*([10] * 10)))
        with pytest.raises(TooManyTranches):
            editor.add_tranche()
        assert len(editor.tranches) == 10

    def test_remove_below_min(self):
        editor = StructureEditor("New", "demo")
        with pytest.raises(TooFewTranches):
            editor.remove_tranche("1")
        assert len(editor.tranches) == 3

    def test_remove(self):
        editor = StructureEditor("New", "demo", _tranches(40, 30, 20, 10))
        editor.remove_tranche("3")
        assert [t.id for t in editor.tranches] == ["0", "1", "2"]

    def test_remove_unknown(self):
        editor = StructureEditor("New", "demo", _tranches(40, 30, 20, 10))
        with pytest.raises(KeyError):
            editor.remove_tranche("missing")

    def test_custom_rules(self):
        editor = StructureEditor("New", "demo", _tranches(60, 40), rules=StructureRules(min_tranches=2))
        assert editor.is_valid()

    def test_update_field(self):
        editor = StructureEditor("New", "demo")
        editor.update_tranche("1", "thickness_percent", 65)
        editor.update_tranche("3", "thickness_percent", 15)
        assert editor.is_valid()
        assert editor.tranches[0].thickness_percent == 65

    def test_update_unknown_field(self):
        editor = StructureEditor("New", "demo")
        with pytest.raises(ValueError):
            editor.update_tranche("1", "rating", "AAA")

    def test_update_out_of_range(self):
        editor = StructureEditor("New", "demo")
        with pytest.raises(ValidationError):
            editor.update_tranche("1", "thickness_percent", 150)
        assert editor.tranches[0].thickness_percent == 70


class TestSave:
    def test_invalid_structure_is_not_saved(self):
        store = FakeStore()
        editor = StructureEditor("x", "demo", _tranches(50, 50, 1))
        with pytest.raises(InvalidStructure) as exc:
            editor.save(store)
        assert exc.value.issues
        assert store.saved == {}

    def test_save_returns_id_and_keeps_it(self):
        store = FakeStore()
        editor = StructureEditor("x", "demo")
        sid = editor.save(store)
        assert sid in store.saved
        assert editor.save(store) == sid
        assert len(store.saved) == 1

    def test_round_trip_through_editor(self):
        store = FakeStore()
        editor = StructureEditor("x", "demo", additional_transaction_costs=2500)
        sid = editor.save(store)
        saved = store.saved[sid]
        reopened = StructureEditor.from_structure(saved)
        assert reopened.to_structure().created_at == saved.created_at
        assert reopened.additional_transaction_costs == 2500

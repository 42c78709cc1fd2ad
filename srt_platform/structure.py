"""
Tranche Structure Model.

Holds a draft tranche stack while a user composes it, enforces the add/remove
guard rails, and validates the whole stack before it is persisted. The
allocation engine never validates; it trusts structures that passed here.
"""
import logging
import uuid
from datetime import datetime
from typing import List, Optional, Any

from srt_platform.config import StructureRules
from srt_platform.models import TrancheDefinition, TrancheStructure, ValidationIssue
from srt_platform.validation import check_structure, hard_issues, total_thickness

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "thickness_percent", "cost_bps", "hedged_percent")


# ── Errors ────────────────────────────────────────────────────────────

class StructureError(Exception):
    """Base class for user-correctable structure problems."""


class InvalidStructure(StructureError):
    def __init__(self, issues: List[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(i.message for i in issues) or "Invalid structure")


class TooManyTranches(StructureError):
    pass


class TooFewTranches(StructureError):
    pass


# ── Templates ─────────────────────────────────────────────────────────

def _new_id() -> str:
    return uuid.uuid4().hex[:12]


def default_tranches() -> List[TrancheDefinition]:
    """Three-tranche starting template shown to new users."""
    return [
        TrancheDefinition(id="1", name="Senior", thickness_percent=70, cost_bps=150, hedged_percent=90),
        TrancheDefinition(id="2", name="Mezzanine", thickness_percent=20, cost_bps=250, hedged_percent=75),
        TrancheDefinition(id="3", name="First Loss", thickness_percent=10, cost_bps=450, hedged_percent=50),
    ]


# ── Editor ────────────────────────────────────────────────────────────

class StructureEditor:
    def __init__(
        self,
        name: str,
        dataset_name: str,
        tranches: Optional[List[TrancheDefinition]] = None,
        additional_transaction_costs: float = 0.0,
        structure_id: Optional[str] = None,
        rules: Optional[StructureRules] = None,
    ):
        self.name = name
        self.dataset_name = dataset_name
        self.tranches: List[TrancheDefinition] = list(tranches) if tranches is not None else default_tranches()
        self.additional_transaction_costs = additional_transaction_costs
        self.structure_id = structure_id
        self.rules = rules or StructureRules()
        self._created_at: Optional[datetime] = None

    @classmethod
    def from_structure(cls, structure: TrancheStructure, rules: Optional[StructureRules] = None) -> "StructureEditor":
        editor = cls(
            name=structure.name,
            dataset_name=structure.dataset_name,
            tranches=[t.model_copy() for t in structure.tranches],
            additional_transaction_costs=structure.additional_transaction_costs,
            structure_id=structure.id,
            rules=rules,
        )
        editor._created_at = structure.created_at
        return editor

    def _index_of(self, tranche_id: str) -> int:
        for i, t in enumerate(self.tranches):
            if t.id == tranche_id:
                return i
        raise KeyError(f"No tranche with id {tranche_id!r}")

    def add_tranche(self) -> TrancheDefinition:
        if len(self.tranches) >= self.rules.max_tranches:
            logger.warning("Rejected add: structure already has %d tranches", len(self.tranches))
            raise TooManyTranches(f"Maximum {self.rules.max_tranches} tranches allowed")
        tranche = TrancheDefinition(
            id=_new_id(),
            name=f"Tranche {len(self.tranches) + 1}",
            thickness_percent=0,
            cost_bps=0,
            hedged_percent=0,
        )
        self.tranches.append(tranche)
        return tranche

    def remove_tranche(self, tranche_id: str) -> None:
        idx = self._index_of(tranche_id)
        if len(self.tranches) - 1 < self.rules.min_tranches:
            logger.warning("Rejected remove: structure would drop below %d tranches", self.rules.min_tranches)
            raise TooFewTranches(f"Minimum {self.rules.min_tranches} tranches required")
        del self.tranches[idx]

    def update_tranche(self, tranche_id: str, field: str, value: Any) -> TrancheDefinition:
        """Update one field. Sum and count checks are deferred to save()."""
        if field not in EDITABLE_FIELDS:
            raise ValueError(f"Unknown tranche field {field!r}")
        idx = self._index_of(tranche_id)
        data = self.tranches[idx].model_dump()
        data[field] = value
        updated = TrancheDefinition.model_validate(data)
        self.tranches[idx] = updated
        return updated

    def total_thickness(self) -> float:
        return total_thickness(self.tranches)

    def issues(self) -> List[ValidationIssue]:
        return check_structure(self.tranches, self.rules)

    def is_valid(self) -> bool:
        return not hard_issues(self.issues())

    def to_structure(self) -> TrancheStructure:
        now = datetime.now()
        return TrancheStructure(
            id=self.structure_id or _new_id(),
            name=self.name,
            dataset_name=self.dataset_name,
            tranches=[t.model_copy() for t in self.tranches],
            additional_transaction_costs=self.additional_transaction_costs,
            created_at=self._created_at or now,
            updated_at=now,
        )

    def save(self, store) -> str:
        """Validate and persist through `store`; returns the structure id."""
        blocking = hard_issues(self.issues())
        if blocking:
            raise InvalidStructure(blocking)
        structure = self.to_structure()
        structure_id = store.save_structure(structure)
        self.structure_id = structure_id
        self._created_at = structure.created_at
        return structure_id

"""
Local persistence for datasets and tranche structures.

Datasets are parquet files under <root>/datasets, indexed by name in
datasets.json. Structures live in a single JSON document. Reads go through
a DatasetCache; every write invalidates the keys it touches, so cached
values are never stale with respect to this store.
"""
import json
import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from srt_platform.models import TrancheStructure, PortfolioAggregate, ValidationIssue
from srt_platform.portfolio import PortfolioFilter, compute_portfolio_aggregate
from srt_platform.validation import run_loan_tape_checks, hard_issues

logger = logging.getLogger(__name__)

DEFAULT_ROOT = Path("data")


class DatasetRejected(Exception):
    def __init__(self, dataset_name: str, issues: List[ValidationIssue]):
        self.dataset_name = dataset_name
        self.issues = issues
        super().__init__(f"Dataset {dataset_name!r} rejected: " + "; ".join(i.message for i in issues))


# ── Cache ─────────────────────────────────────────────────────────────

class DatasetCache:
    """Explicit get-or-fetch cache.

    Entries stay until invalidate()/invalidate_prefix()/clear() is called or
    a caller passes force_refresh. Cached DataFrames are shared; treat them
    as read-only.
    """

    def __init__(self):
        self._entries: Dict[str, Any] = {}
        self.hits = 0
        self.misses = 0

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get_or_fetch(self, key: str, fetch: Callable[[], Any], force_refresh: bool = False) -> Any:
        if not force_refresh and key in self._entries:
            self.hits += 1
            return self._entries[key]
        self.misses += 1
        value = fetch()
        self._entries[key] = value
        return value

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> None:
        for key in [k for k in self._entries if k.startswith(prefix)]:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()


# ── Store ─────────────────────────────────────────────────────────────

def _safe_name(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", name).strip("_") or "dataset"


def _write_json_atomic(path: Path, data: Any) -> None:
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "w") as f:
        json.dump(data, f, indent=2)
    tmp.replace(path)


class LocalStore:
    """Datasets keyed by their display name.

    datasets.json maps each name to its parquet file stem. Stems are
    sanitised and made unique, so names that sanitise alike ("a b", "a_b")
    still get separate files.
    """

    def __init__(self, root: Path = DEFAULT_ROOT, cache: Optional[DatasetCache] = None):
        self.root = Path(root)
        self.datasets_dir = self.root / "datasets"
        self.index_path = self.root / "datasets.json"
        self.structures_path = self.root / "structures.json"
        self.datasets_dir.mkdir(parents=True, exist_ok=True)
        self.cache = cache or DatasetCache()

    # Datasets

    def _read_index(self) -> Dict[str, str]:
        if not self.index_path.exists():
            return {}
        with open(self.index_path, "r") as f:
            return json.load(f)

    def _allocate_stem(self, name: str, index: Dict[str, str]) -> str:
        taken = set(index.values())
        base = _safe_name(name)
        stem, n = base, 2
        while stem in taken or (self.datasets_dir / f"{stem}.parquet").exists():
            stem = f"{base}-{n}"
            n += 1
        return stem

    def _dataset_path(self, name: str) -> Optional[Path]:
        stem = self._read_index().get(name)
        return self.datasets_dir / f"{stem}.parquet" if stem else None

    def _invalidate_dataset(self, name: str) -> None:
        self.cache.invalidate(f"dataset:{name}")
        self.cache.invalidate_prefix(f"aggregate:{name}:")

    def save_dataset(self, name: str, df: pd.DataFrame) -> List[ValidationIssue]:
        """Persist a loan tape; returns the non-blocking (SOFT) issues.

        Saving under an existing name replaces that dataset.
        """
        if not name or not name.strip():
            raise ValueError("Dataset name must not be blank")
        issues = run_loan_tape_checks(df)
        blocking = hard_issues(issues)
        if blocking:
            raise DatasetRejected(name, blocking)

        index = self._read_index()
        stem = index.get(name) or self._allocate_stem(name, index)

        out = df.copy()
        out["dataset_name"] = name
        out.to_parquet(self.datasets_dir / f"{stem}.parquet", index=False)
        if index.get(name) != stem:
            index[name] = stem
            _write_json_atomic(self.index_path, index)
        self._invalidate_dataset(name)
        logger.info("Saved dataset %s as %s.parquet (%d records)", name, stem, len(out))
        return issues

    def list_datasets(self) -> List[str]:
        return sorted(self._read_index())

    def has_dataset(self, name: str) -> bool:
        path = self._dataset_path(name)
        return path is not None and path.exists()

    def load_dataset(self, name: str, force_refresh: bool = False) -> pd.DataFrame:
        path = self._dataset_path(name)
        if path is None or not path.exists():
            raise KeyError(f"Unknown dataset {name!r}")
        return self.cache.get_or_fetch(f"dataset:{name}", lambda: pd.read_parquet(path), force_refresh)

    def get_aggregate(
        self,
        name: str,
        flt: Optional[PortfolioFilter] = None,
        force_refresh: bool = False,
    ) -> PortfolioAggregate:
        key = f"aggregate:{name}:{flt.model_dump_json() if flt else ''}"
        return self.cache.get_or_fetch(
            key,
            lambda: compute_portfolio_aggregate(self.load_dataset(name, force_refresh), name, flt),
            force_refresh,
        )

    def delete_dataset(self, name: str) -> int:
        """Delete a dataset and, with it, every structure built on it."""
        index = self._read_index()
        stem = index.pop(name, None)
        if stem is not None:
            path = self.datasets_dir / f"{stem}.parquet"
            if path.exists():
                path.unlink()
            _write_json_atomic(self.index_path, index)
        self._invalidate_dataset(name)

        structures = self._read_structures()
        doomed = [sid for sid, s in structures.items() if s.get("dataset_name") == name]
        for sid in doomed:
            del structures[sid]
            self.cache.invalidate(f"structure:{sid}")
        self._write_structures(structures)
        logger.info("Deleted dataset %s and %d structure(s)", name, len(doomed))
        return len(doomed)

    # Structures

    def _read_structures(self) -> Dict[str, dict]:
        if not self.structures_path.exists():
            return {}
        with open(self.structures_path, "r") as f:
            return json.load(f)

    def _write_structures(self, data: Dict[str, dict]) -> None:
        _write_json_atomic(self.structures_path, data)
        self.cache.invalidate("structures")

    def save_structure(self, structure: TrancheStructure) -> str:
        structures = self._read_structures()
        structures[structure.id] = structure.model_dump(mode="json")
        self._write_structures(structures)
        self.cache.invalidate(f"structure:{structure.id}")
        logger.info("Saved structure %s (%s) on %s", structure.name, structure.id, structure.dataset_name)
        return structure.id

    def get_structure(self, structure_id: str) -> TrancheStructure:
        def fetch():
            data = self._read_structures()
            if structure_id not in data:
                raise KeyError(f"Unknown structure {structure_id!r}")
            return TrancheStructure.model_validate(data[structure_id])
        return self.cache.get_or_fetch(f"structure:{structure_id}", fetch)

    def list_structures(self, dataset_name: Optional[str] = None) -> List[TrancheStructure]:
        rows = self.cache.get_or_fetch(
            "structures",
            lambda: [TrancheStructure.model_validate(s) for s in self._read_structures().values()],
        )
        if dataset_name is not None:
            rows = [s for s in rows if s.dataset_name == dataset_name]
        return sorted(rows, key=lambda s: s.created_at)

    def delete_structure(self, structure_id: str) -> None:
        structures = self._read_structures()
        if structure_id not in structures:
            raise KeyError(f"Unknown structure {structure_id!r}")
        del structures[structure_id]
        self._write_structures(structures)
        self.cache.invalidate(f"structure:{structure_id}")
        logger.info("Deleted structure %s", structure_id)

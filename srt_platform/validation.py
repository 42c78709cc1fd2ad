from typing import List, Optional, Sequence
import pandas as pd
from srt_platform.models import TrancheDefinition, ValidationIssue
from srt_platform.config import StructureRules


def total_thickness(tranches: Sequence[TrancheDefinition]) -> float:
    return sum(t.thickness_percent for t in tranches)


def check_thickness_sum(tranches: Sequence[TrancheDefinition], rules: StructureRules) -> List[ValidationIssue]:
    issues = []
    total = total_thickness(tranches)
    if abs(total - rules.target_thickness) >= rules.thickness_tolerance:
        issues.append(ValidationIssue(
            severity="HARD",
            message=f"Tranche thickness must sum to {rules.target_thickness:g}% (currently {total:.2f}%)",
            field="thickness_percent",
            value=total,
        ))
    return issues


def check_tranche_count(tranches: Sequence[TrancheDefinition], rules: StructureRules) -> List[ValidationIssue]:
    issues = []
    n = len(tranches)
    if n < rules.min_tranches or n > rules.max_tranches:
        issues.append(ValidationIssue(
            severity="HARD",
            message=f"Structure needs {rules.min_tranches}-{rules.max_tranches} tranches (has {n})",
            field="tranches",
            value=n,
        ))
    return issues


def check_tranche_hygiene(tranches: Sequence[TrancheDefinition]) -> List[ValidationIssue]:
    issues = []
    empty = [t.name or t.id for t in tranches if t.thickness_percent <= 0]
    if empty:
        issues.append(ValidationIssue(
            severity="SOFT",
            message=f"{len(empty)} tranche(s) have zero thickness",
            field="thickness_percent",
            value=empty,
        ))

    names = [t.name.strip().lower() for t in tranches if t.name.strip()]
    dupes = sorted({n for n in names if names.count(n) > 1})
    if dupes:
        issues.append(ValidationIssue(
            severity="SOFT",
            message=f"Duplicate tranche names: {dupes}",
            field="name",
            value=dupes,
        ))
    return issues


def check_structure(
    tranches: Sequence[TrancheDefinition],
    rules: Optional[StructureRules] = None,
) -> List[ValidationIssue]:
    rules = rules or StructureRules()
    all_issues = []
    all_issues.extend(check_thickness_sum(tranches, rules))
    all_issues.extend(check_tranche_count(tranches, rules))
    all_issues.extend(check_tranche_hygiene(tranches))
    return all_issues


def hard_issues(issues: Sequence[ValidationIssue]) -> List[ValidationIssue]:
    return [i for i in issues if i.severity == "HARD"]


# ── Loan Tape Checks ──────────────────────────────────────────────────

REQUIRED_TAPE_COLUMNS = ["loan_id", "opening_balance", "interest_rate"]


def check_schema_completeness(df: pd.DataFrame, required_cols: List[str]) -> List[ValidationIssue]:
    issues = []
    missing = [c for c in required_cols if c not in df.columns]
    if missing:
        issues.append(ValidationIssue(
            severity="HARD",
            message=f"Missing required columns: {missing}"
        ))
    return issues


def check_integrity(df: pd.DataFrame) -> List[ValidationIssue]:
    issues = []
    if "loan_id" in df.columns:
        dupes = df[df.duplicated(subset=["loan_id"], keep=False)]
        if not dupes.empty:
            issues.append(ValidationIssue(
                severity="HARD",
                message=f"Duplicate loan_ids found: {len(dupes)} duplicates",
                field="loan_id",
                value=dupes["loan_id"].astype(str).tolist()[:5],
            ))
    return issues


def check_domain_logic(df: pd.DataFrame) -> List[ValidationIssue]:
    issues = []

    if "pd" in df.columns:
        pds = pd.to_numeric(df["pd"], errors="coerce")
        outliers = df[(pds < 0) | (pds > 1)]
        if not outliers.empty:
            issues.append(ValidationIssue(
                severity="SOFT",
                message=f"Found {len(outliers)} loans with PD outside [0, 1]",
                field="pd",
            ))

    if "opening_balance" in df.columns:
        balances = pd.to_numeric(df["opening_balance"], errors="coerce")
        negative = df[balances < 0]
        if not negative.empty:
            issues.append(ValidationIssue(
                severity="SOFT",
                message=f"Found {len(negative)} loans with negative opening balance",
                field="opening_balance",
            ))

    return issues


def run_loan_tape_checks(df: pd.DataFrame) -> List[ValidationIssue]:
    all_issues = []
    all_issues.extend(check_schema_completeness(df, REQUIRED_TAPE_COLUMNS))
    all_issues.extend(check_integrity(df))
    all_issues.extend(check_domain_logic(df))
    return all_issues

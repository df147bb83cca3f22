"""Per-store reports and the run summary returned to callers."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from shelfmerge.domain.model import MergePolicy, MergeTrigger, StoreStatus

if TYPE_CHECKING:
    from pathlib import Path

    from shelfmerge.domain.model import EntityType, MergeIssue, RejectionKind

    from .contracts import StoreRejection


BUSY_REASON = "background-job-active"


@dataclass(frozen=True, slots=True, kw_only=True)
class Diagnostic:
    store: str
    table: str | None
    row_id: int | None
    issue: MergeIssue
    message: str


@dataclass(slots=True, kw_only=True)
class StoreReport:
    path: Path
    status: StoreStatus = StoreStatus.MERGED
    rejection: RejectionKind | None = None
    inserted: dict[EntityType, int] = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @classmethod
    def rejected(cls, rejection: StoreRejection) -> StoreReport:
        return cls(path=rejection.path, status=StoreStatus.REJECTED, rejection=rejection.kind)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def total_inserted(self) -> int:
        return sum(self.inserted.values())

    def record(
        self,
        issue: MergeIssue,
        message: str,
        *,
        table: str | None = None,
        row_id: int | None = None,
    ) -> Diagnostic:
        diagnostic = Diagnostic(
            store=self.name,
            table=table,
            row_id=row_id,
            issue=issue,
            message=message,
        )
        self.diagnostics.append(diagnostic)
        return diagnostic


@dataclass(slots=True, kw_only=True)
class MergeSummary:
    """Aggregate outcome of one merge run.

    ``inserted`` only counts net-new destination rows; updates of existing
    rows are not tracked.
    """

    merged: bool
    inserted: dict[EntityType, int] = field(default_factory=dict)
    skipped: bool = False
    reason: str | None = None
    error: str | None = None
    trigger: MergeTrigger = MergeTrigger.MANUAL
    policy: MergePolicy = MergePolicy.CURRENT_USER
    stores: list[StoreReport] = field(default_factory=list)

    @classmethod
    def deferred(cls, reason: str, *, trigger: MergeTrigger, policy: MergePolicy) -> MergeSummary:
        return cls(merged=False, skipped=True, reason=reason, trigger=trigger, policy=policy)

    @classmethod
    def failed(cls, error: str, *, trigger: MergeTrigger, policy: MergePolicy) -> MergeSummary:
        return cls(merged=False, error=error, trigger=trigger, policy=policy)

    def add_store(self, report: StoreReport) -> None:
        self.stores.append(report)
        totals = Counter(self.inserted)
        totals.update(report.inserted)
        self.inserted = {entity_type: count for entity_type, count in totals.items() if count}

    @property
    def total_inserted(self) -> int:
        return sum(self.inserted.values())

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return [diagnostic for store in self.stores for diagnostic in store.diagnostics]

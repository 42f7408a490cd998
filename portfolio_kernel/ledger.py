"""
Ledger interface -- the persistence collaborator of the synthesis core.

Contract:
    The synthesis engines never touch a database.  Batch tasks read company
    aggregates and investment ledgers through a ``Ledger`` and write derived
    records and rollups back through the same object.

    Every failure of a read or write surfaces as ``PersistenceError`` carrying
    the company id (when known) and the operation name.  ``ping()`` is the
    only method allowed to raise ``FatalSetupError``.

    Insert methods are all-or-nothing per call.  A caller that wants
    best-effort semantics retries a failed batch record by record (see
    ``portfolio_batch.tasks.base.insert_with_fallback``).

Non-goals:
    - The ledger does not decide commit boundaries beyond ``checkpoint()``.
    - The ledger does not validate synthesis rules; DTOs validate themselves.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from contextlib import AbstractContextManager
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from portfolio_kernel.domain.records import (
    AmountRow,
    CompanyAggregate,
    FundingRound,
    Investment,
    LedgerEntity,
    Milestone,
    SynthesisKind,
    ValuationSnapshot,
)

# Fields of CompanyAggregate that may be written back.
WRITABLE_COMPANY_FIELDS: frozenset[str] = frozenset(
    {"valuation", "total_investment", "investor_count"}
)


@dataclass(frozen=True)
class CompanyFilter:
    """Narrows ``read_companies``; an empty filter selects every company."""

    company_ids: tuple[UUID, ...] = ()
    names: tuple[str, ...] = ()
    active_only: bool = False
    limit: int | None = None

    @property
    def is_empty(self) -> bool:
        return (
            not self.company_ids
            and not self.names
            and not self.active_only
            and self.limit is None
        )


@runtime_checkable
class Ledger(Protocol):
    """Read/write interface over companies and their derived records."""

    def ping(self) -> None:
        """Probe connectivity.  Raises FatalSetupError when unreachable."""
        ...

    def read_companies(
        self, company_filter: CompanyFilter | None = None,
    ) -> list[CompanyAggregate]: ...

    def read_investments(self, company_id: UUID) -> list[Investment]: ...

    def write_company_aggregate(
        self, company_id: UUID, fields: Mapping[str, Decimal | int],
    ) -> None:
        """Partial update of the writable aggregate fields."""
        ...

    def insert_rounds(
        self, company_id: UUID, records: Sequence[FundingRound],
    ) -> int: ...

    def insert_investments(
        self, company_id: UUID, records: Sequence[Investment],
    ) -> int: ...

    def insert_milestones(
        self, company_id: UUID, records: Sequence[Milestone],
    ) -> int: ...

    def insert_valuation_snapshots(
        self, company_id: UUID, records: Sequence[ValuationSnapshot],
    ) -> int: ...

    def delete_synthesized(self, company_id: UUID, kind: SynthesisKind) -> int:
        """Delete the previously synthesized records of one kind."""
        ...

    def read_amount_rows(self, entity: LedgerEntity) -> list[AmountRow]:
        """Amount fields of stored records, excluding synthesized ones."""
        ...

    def write_record_field(
        self, entity: LedgerEntity, record_id: UUID, field: str, value: Decimal,
    ) -> None: ...

    def unit_of_work(self) -> AbstractContextManager[Any]:
        """Logical unit: everything inside commits or rolls back together."""
        ...

    def checkpoint(self) -> None:
        """Make the work done so far durable."""
        ...

    def top_companies_by_investment(self, limit: int = 5) -> list[CompanyAggregate]: ...


def chunked(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    """Yield consecutive slices of at most ``size`` items."""
    if size < 1:
        raise ValueError(f"chunk size must be >= 1, got {size}")
    for start in range(0, len(items), size):
        yield items[start:start + size]

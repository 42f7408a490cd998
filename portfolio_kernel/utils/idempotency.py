"""
Synthesis key generation utilities.

Synthesis keys make re-synthesis idempotent: the same company, kind and
ordinal always map to the same key, and the key carries a UNIQUE constraint
on every derived-record table.
"""

from uuid import UUID

from portfolio_kernel.domain.records import SynthesisKind


def generate_synthesis_key(
    kind: SynthesisKind,
    company_id: UUID | str,
    ordinal: int,
) -> str:
    """
    Generate the synthesis key for one derived record.

    Format: kind:company_id:ordinal

    Example:
        >>> generate_synthesis_key(SynthesisKind.FUNDING_ROUND, uuid, 1)
        "funding_round:550e8400-e29b-41d4-a716-446655440000:1"
    """
    return f"{kind.value}:{company_id}:{ordinal}"

"""
portfolio_engines.sampling -- Seeded randomness for the synthesizers.

Every random draw made during synthesis goes through a ``SynthesisRandom``.
``SynthesisRandom.for_key(seed, kind, company_id)`` derives an independent
stream per (seed, synthesis kind, company), so the records synthesized for a
company do not depend on which other companies were processed before it or
on the order of stages.  A ``None`` seed gives an unseeded stream.
"""

from __future__ import annotations

import hashlib
import random
from datetime import datetime, timedelta
from decimal import ROUND_DOWN, Decimal
from uuid import UUID

from portfolio_kernel.domain.records import SynthesisKind


class SynthesisRandom:
    """Thin wrapper over ``random.Random`` returning Decimals and datetimes."""

    def __init__(self, seed: int | str | None = None):
        self._rng = random.Random(seed)

    @classmethod
    def for_key(
        cls,
        seed: int | str | None,
        kind: SynthesisKind,
        company_id: UUID,
    ) -> SynthesisRandom:
        if seed is None:
            return cls()
        material = f"{seed}:{kind.value}:{company_id}".encode("utf-8")
        return cls(int.from_bytes(hashlib.sha256(material).digest()[:8], "big"))

    def random(self) -> float:
        return self._rng.random()

    def ratio(self, low: Decimal, high: Decimal, places: int = 4) -> Decimal:
        """A Decimal in the half-open range [low, high)."""
        if high <= low:
            raise ValueError(f"empty ratio range [{low}, {high})")
        quantum = Decimal(1).scaleb(-places)
        drawn = low + (high - low) * Decimal(repr(self._rng.random()))
        return drawn.quantize(quantum, rounding=ROUND_DOWN)

    def timestamp_between(self, start: datetime, end: datetime) -> datetime:
        """A whole-second timestamp in the closed range [start, end]."""
        if end < start:
            raise ValueError(f"window ends before it starts: {start} > {end}")
        span = int((end - start).total_seconds())
        return start + timedelta(seconds=self._rng.randint(0, span))

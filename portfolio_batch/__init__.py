"""
portfolio_batch -- Chunked batch execution of the synthesis pipeline.

Runs the normalizer, the four synthesizers and the rollup reconciler over
every selected company, one stage after another.  Each item runs in its own
SAVEPOINT; the ledger is committed after every chunk.

Architecture:
    portfolio_batch/ is a top-level package.  Nothing in portfolio_kernel/
    or portfolio_engines/ imports from it.

Invariants:
    - SAVEPOINT isolation per item
    - Clock injection (no datetime.now() calls)
    - One item's failure never aborts a stage; only an unreachable ledger
      aborts a run
"""

from portfolio_batch.orchestrator import SynthesisOrchestrator, build_task_registry

__all__ = ["SynthesisOrchestrator", "build_task_registry"]

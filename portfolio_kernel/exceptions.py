"""
Typed Exception Hierarchy for the Portfolio Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Batch synthesis runs over thousands of companies and must tell apart three
very different situations:
  - a record that simply has nothing to synthesize (a documented no-op),
  - a ledger read or write that failed for ONE company or record,
  - a ledger that is unreachable before any work starts.

Each situation gets its own exception type with a machine-readable ``code``
and structured attributes, so the executor can count and report without
parsing message strings.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PortfolioKernelError (base)
    |
    +-- ValidationSkip              missing fields / nothing to synthesize
    +-- PersistenceError            ledger read/write failed (per record)
    +-- FatalSetupError             ledger unreachable at batch start
    +-- SynthesisError
    |   +-- SynthesisInvariantError synthesized record breaks an invariant
    +-- ConfigurationError          invalid settings
    +-- TaskNotRegisteredError      unknown batch stage

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                          | When Raised
------------------------------|-----------------------------------------------
VALIDATION_SKIP               | Source record lacks required fields, or n=0/T=0
PERSISTENCE_ERROR             | Ledger read/write failed (caught per unit)
FATAL_SETUP_ERROR             | Ledger unreachable; run aborts before work
SYNTHESIS_INVARIANT_VIOLATED  | Generated record violates a model invariant
CONFIGURATION_ERROR           | Unknown key or invalid value in settings
TASK_NOT_REGISTERED           | Stage name has no registered task

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        ledger.write_company_aggregate(company_id, fields)
    except PersistenceError as e:
        logger.warning("rollup_write_failed", extra={"company_id": e.company_id})
        errors += 1            # never aborts the surrounding batch

Only ``FatalSetupError`` is allowed to escape a batch run.
"""


class PortfolioKernelError(Exception):
    """
    Base exception for all portfolio kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PORTFOLIO_KERNEL_ERROR"


class ValidationSkip(PortfolioKernelError):
    """
    A source record cannot (or need not) be processed.

    Not a failure: the executor counts it as skipped.
    """

    code: str = "VALIDATION_SKIP"

    def __init__(self, reason: str, record_key: str | None = None):
        self.reason = reason
        self.record_key = record_key
        suffix = f" ({record_key})" if record_key else ""
        super().__init__(f"Skipped{suffix}: {reason}")


class PersistenceError(PortfolioKernelError):
    """The ledger failed a read or a write."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(
        self,
        operation: str,
        detail: str,
        company_id: str | None = None,
    ):
        self.operation = operation
        self.detail = detail
        self.company_id = company_id
        target = f" for company {company_id}" if company_id else ""
        super().__init__(f"Ledger {operation} failed{target}: {detail}")


class FatalSetupError(PortfolioKernelError):
    """The ledger is unreachable at batch start."""

    code: str = "FATAL_SETUP_ERROR"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Ledger unavailable, run aborted: {detail}")


class SynthesisError(PortfolioKernelError):
    """Base exception for synthesis failures."""

    code: str = "SYNTHESIS_ERROR"


class SynthesisInvariantError(SynthesisError):
    """A synthesized record violates a model invariant."""

    code: str = "SYNTHESIS_INVARIANT_VIOLATED"

    def __init__(self, kind: str, company_id: str, detail: str):
        self.kind = kind
        self.company_id = company_id
        self.detail = detail
        super().__init__(
            f"Synthesized {kind} for company {company_id} is invalid: {detail}"
        )


class ConfigurationError(PortfolioKernelError):
    """Settings could not be parsed or are out of range."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, section: str, detail: str):
        self.section = section
        self.detail = detail
        super().__init__(f"Invalid configuration [{section}]: {detail}")


class TaskNotRegisteredError(PortfolioKernelError):
    """No batch task is registered for a stage."""

    code: str = "TASK_NOT_REGISTERED"

    def __init__(self, stage: str, available: tuple[str, ...]):
        self.stage = stage
        self.available = available
        super().__init__(
            f"No task registered for stage '{stage}'. "
            f"Available: {', '.join(available) or '(none)'}"
        )

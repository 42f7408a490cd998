"""
Portfolio Kernel

Persistence-facing core for company portfolio synthesis:
- Company aggregates and their derived ledger records
- A ledger interface with a SQLAlchemy implementation
- Typed exceptions with machine-readable codes
- Structured JSON logging
"""

__version__ = "0.1.0"

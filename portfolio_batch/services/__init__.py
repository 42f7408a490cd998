"""Batch services: the chunked stage executor."""

from portfolio_batch.services.executor import BatchExecutor

__all__ = ["BatchExecutor"]

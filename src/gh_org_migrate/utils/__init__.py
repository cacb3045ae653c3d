"""Utility modules."""

from .logging import setup_logging, get_logger
from .batching import run_in_batches, split_batches

__all__ = ['setup_logging', 'get_logger', 'run_in_batches', 'split_batches']

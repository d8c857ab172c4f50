"""Logging modules for the datacenter finder."""

from .jsonl_logger import JSONLLogger
from .result_store import ResultStore
from .text_logger import TextLogger

__all__ = ['JSONLLogger', 'ResultStore', 'TextLogger']

"""
Application of change sets to the target store.
"""

from .dispatcher import BUCKET_ORDER, BatchDispatcher, chunk_keys

__all__ = ['BUCKET_ORDER', 'BatchDispatcher', 'chunk_keys']

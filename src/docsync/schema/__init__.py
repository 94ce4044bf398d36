"""
Schema and index alignment between source and target collections.
"""

from .reconciler import SchemaReconciler, SchemaResult, index_matches

__all__ = ['SchemaReconciler', 'SchemaResult', 'index_matches']

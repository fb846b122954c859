"""
Reconciliation engine and content rewriting.
"""

from .reconciler import ReleaseReconciler
from .rewriter import ContentRewriter

__all__ = [
    "ReleaseReconciler",
    "ContentRewriter",
]

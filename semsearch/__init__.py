"""
Concurrent embedding search over a precomputed image corpus.
"""

__version__ = "0.3.0"

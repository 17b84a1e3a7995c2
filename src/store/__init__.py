"""Storage and registry layer.

This module persists data set definitions in a versioned document store
and keeps the in-memory definition registry synchronized with it.
"""

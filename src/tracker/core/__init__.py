"""Core services and cross-cutting concerns.

Import from the subpackages directly; this package stays empty so that
``tracker.config`` can import ``tracker.core.constants`` without
pulling in the database layer.
"""

"""Quota store adapters.

The rate gate depends on the abstract store only, so the per-process
in-memory backend used in development can be swapped for Redis without
touching the decision logic.
"""

"""
Derived data models.

Immutable snapshots handed to strategies and to the UI-facing sinks.
"""

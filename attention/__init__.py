"""
Attention engine.

Scores tasks, inbox messages, calendar events, commitments and related
records into a single ranked queue, and tracks per-item triage state.
"""

__version__ = "0.3.0"

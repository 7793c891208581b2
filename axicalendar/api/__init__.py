"""API Layer — probes and the global error envelope.

Invariants:
    - Routes registered explicitly in main.py (no auto-discovery)
    - Every CalendarError reaches the client as the same JSON envelope
"""

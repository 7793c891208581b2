"""Services Layer — repositories that orchestrate store calls around pure core logic.

Invariants:
    - Raw store exceptions never escape a service; they become CalendarError kinds
"""

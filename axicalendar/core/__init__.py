"""Core Layer — pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - All functions are pure and deterministic (item_store.py only declares the
      boundary contract, it performs no IO itself)

Design Decisions:
    - Functional core separated from imperative shell: key derivation and
      update planning are testable without a database
"""

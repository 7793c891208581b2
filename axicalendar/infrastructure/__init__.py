"""Infrastructure — database session management, the SQL item store, and logging.

Invariants:
    - Single async engine per process (initialized via init_db)
    - All sessions are async (AsyncSession)
"""

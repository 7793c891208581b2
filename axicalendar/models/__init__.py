"""ORM Models — the single physical table behind every logical entity."""

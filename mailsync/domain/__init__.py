"""Domain layer: enums and exceptions (no infrastructure imports)."""

"""Application layer: DTOs, ports and sync services."""

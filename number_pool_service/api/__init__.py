"""HTTP adapter for the number pool engine."""

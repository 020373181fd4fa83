"""Storage backends and adapters for external systems."""

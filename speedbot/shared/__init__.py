"""Models, storage and caching shared across speedbot."""

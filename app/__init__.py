"""FlashStore push delivery service."""

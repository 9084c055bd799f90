"""Domain and payload models."""

"""Core primitives: errors, logging, settings, persistence helpers."""

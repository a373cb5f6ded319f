"""Utility helpers — logging and tracing."""

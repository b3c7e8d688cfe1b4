"""Observability utilities: logging, tracing and metrics."""

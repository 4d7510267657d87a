"""
Utility functions and helpers for Elaina.

This package provides reusable utilities:

- **logger.py**: Centralized logging configuration with colored console output,
  rotating file handlers, and per-session log aggregation. Suppresses noise from
  verbose libraries (Discord internals, HTTP clients). Uses prompt_toolkit for
  non-blocking console I/O.

- **errors.py**: Exception hierarchy separating transport, judgment, model,
  and configuration failures.
"""

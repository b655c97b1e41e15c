"""
Fleet Kernel -- shared infrastructure for the cross-account report batch.

Provides:
- An injectable clock (no direct ``datetime.now()`` in domain code)
- A typed exception hierarchy with machine-readable codes
- Structured JSON logging with run-scoped context fields
"""

__version__ = "0.1.0"

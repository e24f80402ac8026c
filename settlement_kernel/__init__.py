"""
Settlement Kernel

Shared foundation for event closeout settlement:
- Typed exceptions with machine-readable codes
- Structured JSON logging with request-scoped context
- Booking / event / check-in records and Decimal amount helpers
"""

__version__ = "0.1.0"

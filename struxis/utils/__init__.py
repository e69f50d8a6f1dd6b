"""
Utility functions module.

Time Semantics:
- Bar timestamps from the caller are ALWAYS authoritative
- Naive datetimes are interpreted as UTC
- Integer timestamps are epoch milliseconds
"""

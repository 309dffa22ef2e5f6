"""
Timer subsystem.

Components:
- ledger.py: sorted deadlines behind a single host timeout
- coalesce.py: debounce / throttle records
"""

"""Infrastructure Layer — database, event transport, directories, logging.

Invariants:
    - Implements the Protocols of core/repository_protocols.py
    - Library exceptions are mapped to core/errors.py types at this boundary
"""

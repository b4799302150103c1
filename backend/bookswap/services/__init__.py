"""Services Layer — fact checkers, saga coordinator, reconciliation, initiator.

Invariants:
    - Services depend on core/ Protocols, never on concrete infrastructure
    - Consumer handlers return a HandlerOutcome; they never ack themselves

Design Decisions:
    - One file per saga participant for locality
"""

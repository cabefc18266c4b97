"""Game domain services: room registry, round state machine, chain
assignment, submission ledger, scoring and results.

Imported by HTTP routes and the deadline scheduler, keeping transport
concerns separated from core game mechanics.
"""

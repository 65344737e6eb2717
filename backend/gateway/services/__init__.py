"""Services Layer — adapters between generation runs and client protocols.

Invariants:
    - One generation run feeds exactly one consumer (emitter or aggregator)
    - Callbacks never block the generation backend

Design Decisions:
    - Message passing through EventInbox instead of shared buffers + locks
"""

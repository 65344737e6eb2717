"""Chat Completion Gateway — bridges a streaming generation backend to chat completion APIs.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)

Design Decisions:
    - Empty __init__.py: explicit imports only, no star exports
"""

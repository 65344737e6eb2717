"""Infrastructure Layer — external service clients and cross-cutting concerns.

Invariants:
    - External failures mapped to the core error hierarchy before leaving this layer
    - Backends implement core Protocols (GenerationClient, AppConfigStore)

Design Decisions:
    - Thin wrappers over raw clients: isolates SDK details from services
"""

"""Core protocol logic.

Nothing in this package talks to the network directly; external systems are
reached through the protocols in ``fedgate.core.interfaces``.
"""

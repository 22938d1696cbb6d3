"""Access control module."""

from .access_gate import AccessGate, GateDecision, GateReason, is_mentioned

__all__ = ["AccessGate", "GateDecision", "GateReason", "is_mentioned"]

from __future__ import annotations


class InvariantError(RuntimeError):
    """Raised when the engine reaches a state that only a programming defect can produce."""

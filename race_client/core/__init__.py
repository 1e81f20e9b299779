from .network import ConnectionSession, SessionState
from .reconciler import ReconciliationEngine

__all__ = ["ConnectionSession", "SessionState", "ReconciliationEngine"]

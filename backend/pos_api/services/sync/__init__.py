from .reconciliation import POLICIES, POLICY_SNAPSHOT, POLICY_VERSIONED, ReconciliationLoop

__all__ = ["POLICIES", "POLICY_SNAPSHOT", "POLICY_VERSIONED", "ReconciliationLoop"]

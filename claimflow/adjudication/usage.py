# claimflow/adjudication/usage.py
"""Charging approved claims against coverage usage counters."""

from claimflow.database.tables import Claim
from claimflow.storage.policy_store import PolicyStore


def approved_line_items(claim: Claim) -> list:
    snapshot = claim.analysis_snapshot or {}
    coverage = snapshot.get("coverage_analysis") or {}
    return coverage.get("items") or []


def charge_claim_usage(policies: PolicyStore, claim: Claim) -> bool:
    """
    Charge the claim's adjudicated payout lines once, inside the caller's transaction.

    Returns False when the claim was already charged.
    """
    if claim.usage_charged:
        return False
    policies.charge_line_items(approved_line_items(claim))
    claim.usage_charged = True
    return True

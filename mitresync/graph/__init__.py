"""Nebula Graph synchronization.

Builds idempotent nGQL plans for a resolved mitigation and applies them
through a graph oracle.
"""

from mitresync.graph.oracle import GraphOracle, NebulaOracle
from mitresync.graph.planner import (
    ExecutionReport,
    MitigationSync,
    PlannedStatement,
    PlanPhase,
    SyncOutcome,
    SyncPlan,
    SyncState,
    VerificationResult,
    build_plan,
)
from mitresync.graph.ngql import render_script

__all__ = [
    "ExecutionReport",
    "GraphOracle",
    "MitigationSync",
    "NebulaOracle",
    "PlannedStatement",
    "PlanPhase",
    "SyncOutcome",
    "SyncPlan",
    "SyncState",
    "VerificationResult",
    "build_plan",
    "render_script",
]

"""Idempotent synchronization of one mitigation into the graph store.

The sync is a small state machine::

    INIT -> CHECKED_EXISTENCE -> PLAN_GENERATED -> CONFIRMED | CANCELLED
         -> EXECUTED -> VERIFIED

A plan has four phases that must run in order, because later edges
reference vertices created by earlier phases:

1. ``techniques``: insert missing technique vertices
2. ``has_subtechnique``: parent -> sub-technique edges for missing sub-techniques
3. ``part_of``: technique -> tactic edges for missing techniques
4. ``mitigates``: mitigation -> technique edges for every resolved technique

Every statement is ``IF NOT EXISTS``, so re-running a synced mitigation only
re-asserts the mitigates edges. Parents of new sub-techniques are not checked
for existence; the edge is emitted regardless.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Set

from ..catalog.hierarchy import is_subtechnique, parent_technique_id, tactic_id
from ..catalog.models import ResolvedMitigation
from ..config.loader import GraphDefaults
from ..exceptions import MitigationMissingError, OracleError, StatementExecutionError, SyncStateError
from . import ngql
from .oracle import GraphOracle

logger = logging.getLogger(__name__)

TECHNIQUES_PHASE = "techniques"


class SyncState(str, Enum):
    """States of a mitigation sync."""
    INIT = "init"
    CHECKED_EXISTENCE = "checked_existence"
    PLAN_GENERATED = "plan_generated"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXECUTED = "executed"
    VERIFIED = "verified"


@dataclass
class PlannedStatement:
    """A statement and a short description used in error messages."""
    text: str
    description: str


@dataclass
class PlanPhase:
    name: str
    title: str
    statements: List[PlannedStatement] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.statements)


@dataclass
class SyncPlan:
    """Ordered statement plan for one mitigation."""
    mitigation_id: str
    mitigation_name: str
    missing: List[str]
    phases: List[PlanPhase]
    expected_edges: int

    def phase(self, name: str) -> PlanPhase:
        for phase in self.phases:
            if phase.name == name:
                return phase
        raise KeyError(name)

    def statements(self) -> List[PlannedStatement]:
        return [s for phase in self.phases for s in phase.statements]

    def counts(self) -> Dict[str, int]:
        return {phase.name: len(phase) for phase in self.phases}


@dataclass
class ExecutionReport:
    """Number of statements applied per phase."""
    applied: Dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.applied.values())


@dataclass
class VerificationResult:
    expected: int
    actual: int

    @property
    def matched(self) -> bool:
        return self.actual == self.expected


@dataclass
class SyncOutcome:
    """Terminal result of MitigationSync.run()."""
    state: SyncState
    plan: SyncPlan
    report: Optional[ExecutionReport] = None
    verification: Optional[VerificationResult] = None


def build_plan(
    result: ResolvedMitigation,
    missing: Sequence[str],
    defaults: Optional[GraphDefaults] = None,
) -> SyncPlan:
    """Build the four-phase statement plan.

    Args:
        result: Resolved mitigation and its techniques
        missing: Technique IDs absent from the graph store
        defaults: Fixed vertex and edge attributes

    Returns:
        SyncPlan whose phases are in execution order
    """
    defaults = defaults or GraphDefaults()
    missing_set = set(missing)
    missing_techniques = [t for t in result.techniques if t.external_id in missing_set]

    techniques = PlanPhase(TECHNIQUES_PHASE, "Insert missing techniques")
    subtechniques = PlanPhase(ngql.SUBTECHNIQUE_EDGE, "Insert has_subtechnique edges (parent to subtechnique)")
    tactics = PlanPhase(ngql.TACTIC_EDGE, "Insert part_of edges (technique/subtechnique to tactic)")
    mitigates = PlanPhase(ngql.MITIGATES_EDGE, "Insert mitigates edges (mitigation to techniques)")

    for technique in missing_techniques:
        techniques.statements.append(PlannedStatement(
            ngql.insert_technique(technique.external_id, technique.name, defaults),
            f"technique {technique.external_id}",
        ))

    for technique in missing_techniques:
        if is_subtechnique(technique.external_id):
            parent_id = parent_technique_id(technique.external_id)
            subtechniques.statements.append(PlannedStatement(
                ngql.insert_subtechnique_edge(parent_id, technique.external_id),
                f"has_subtechnique edge {parent_id}->{technique.external_id}",
            ))

    for technique in missing_techniques:
        for phase_name in technique.tactics:
            tactic = tactic_id(phase_name)
            if tactic is None:
                logger.debug(f"No tactic mapping for phase {phase_name!r} of {technique.external_id}")
                continue
            tactics.statements.append(PlannedStatement(
                ngql.insert_part_of_edge(technique.external_id, tactic),
                f"part_of edge {technique.external_id}->{tactic}",
            ))

    for technique in result.techniques:
        mitigates.statements.append(PlannedStatement(
            ngql.insert_mitigates_edge(result.external_id, technique.external_id, defaults),
            f"mitigates edge {result.external_id}->{technique.external_id}",
        ))

    return SyncPlan(
        mitigation_id=result.external_id,
        mitigation_name=result.name,
        missing=[t.external_id for t in missing_techniques],
        phases=[techniques, subtechniques, tactics, mitigates],
        expected_edges=len(result.techniques),
    )


class MitigationSync:
    """Drive one mitigation through existence check, plan, execution and verification.

    Example:
        sync = MitigationSync(result, oracle)
        outcome = sync.run(prompt_fn=lambda plan: click.confirm("Proceed?"))
        if outcome.verification and not outcome.verification.matched:
            ...
    """

    def __init__(
        self,
        result: ResolvedMitigation,
        oracle: GraphOracle,
        defaults: Optional[GraphDefaults] = None,
    ):
        self.result = result
        self.oracle = oracle
        self.defaults = defaults or GraphDefaults()

        self.state = SyncState.INIT
        self.mitigation_exists: Optional[bool] = None
        self.existing: Set[str] = set()
        self.plan: Optional[SyncPlan] = None
        self.report: Optional[ExecutionReport] = None
        self.verification: Optional[VerificationResult] = None

    def _require(self, *states: SyncState) -> None:
        if self.state not in states:
            expected = ", ".join(s.value for s in states)
            raise SyncStateError(f"sync is in state {self.state.value}, expected {expected}")

    def check_existence(self) -> None:
        """Ask the oracle which of the mitigation and its techniques exist.

        Raises:
            OracleError: On any transport or query failure
        """
        self._require(SyncState.INIT)

        self.mitigation_exists = self.oracle.exists(self.result.external_id)
        self.existing = set(self.oracle.existing_subset(self.result.technique_ids))

        logger.debug(f"Total techniques: {len(self.result.techniques)}")
        logger.debug(f"Existing techniques: {len(self.existing)}")
        self.state = SyncState.CHECKED_EXISTENCE

    def generate_plan(self) -> SyncPlan:
        self._require(SyncState.CHECKED_EXISTENCE)

        missing = [tid for tid in self.result.technique_ids if tid not in self.existing]
        logger.debug(f"Missing techniques: {len(missing)}")

        self.plan = build_plan(self.result, missing, self.defaults)
        self.state = SyncState.PLAN_GENERATED
        return self.plan

    def confirm(self, prompt_fn: Callable[[SyncPlan], bool]) -> bool:
        """Gate execution on an interactive answer; False cancels without error."""
        self._require(SyncState.PLAN_GENERATED)

        if prompt_fn(self.plan):
            self.state = SyncState.CONFIRMED
            return True

        logger.info("Execution cancelled by user")
        self.state = SyncState.CANCELLED
        return False

    def skip_confirmation(self) -> None:
        self._require(SyncState.PLAN_GENERATED)
        self.state = SyncState.CONFIRMED

    def execute(self, on_phase: Optional[Callable[[PlanPhase], None]] = None) -> ExecutionReport:
        """Run the plan phase by phase, one statement at a time.

        Args:
            on_phase: Called after each non-empty phase completes

        Raises:
            MitigationMissingError: If the mitigation vertex does not exist
            StatementExecutionError: On the first failing statement; earlier
                statements stay applied
        """
        self._require(SyncState.CONFIRMED)

        if not self.mitigation_exists:
            raise MitigationMissingError(
                f"Mitigation {self.result.external_id} does not exist in database",
                mitigation_id=self.result.external_id,
            )

        report = ExecutionReport()
        for phase in self.plan.phases:
            report.applied[phase.name] = 0
            for statement in phase.statements:
                logger.debug(f"Executing: {statement.text}")
                try:
                    self.oracle.execute(statement.text)
                except OracleError as e:
                    self.report = report
                    raise StatementExecutionError(
                        f"failed to insert {statement.description}: {e.message} "
                        f"({report.total} statements already applied, no rollback)",
                        statement=statement.text,
                        applied=report.total,
                    ) from e
                report.applied[phase.name] += 1

            if phase.statements:
                logger.info(f"Phase {phase.name}: {len(phase)} statements applied")
                if on_phase:
                    on_phase(phase)

        self.report = report
        self.state = SyncState.EXECUTED
        return report

    def verify(self) -> VerificationResult:
        """Compare the mitigates edge count in the store with the resolved set size."""
        self._require(SyncState.EXECUTED)

        actual = self.oracle.count_mitigates_edges(self.result.external_id)
        self.verification = VerificationResult(expected=self.plan.expected_edges, actual=actual)

        if self.verification.matched:
            logger.info(f"Verification succeeded: {actual} mitigates edges")
        else:
            logger.warning(
                f"Verification mismatch: expected {self.verification.expected}, found {actual}"
            )

        self.state = SyncState.VERIFIED
        return self.verification

    def run(
        self,
        prompt_fn: Optional[Callable[[SyncPlan], bool]] = None,
        on_phase: Optional[Callable[[PlanPhase], None]] = None,
    ) -> SyncOutcome:
        """Run the whole sync.

        Args:
            prompt_fn: Confirmation gate; None runs non-interactively
            on_phase: Progress callback passed to execute()

        Raises:
            MitigationMissingError: Before planning, if the mitigation vertex is absent
        """
        self.check_existence()
        if not self.mitigation_exists:
            raise MitigationMissingError(
                f"Mitigation {self.result.external_id} does not exist in database",
                mitigation_id=self.result.external_id,
            )

        plan = self.generate_plan()

        if prompt_fn is None:
            self.skip_confirmation()
        elif not self.confirm(prompt_fn):
            return SyncOutcome(state=self.state, plan=plan)

        self.execute(on_phase=on_phase)
        self.verify()
        return SyncOutcome(
            state=self.state,
            plan=plan,
            report=self.report,
            verification=self.verification,
        )

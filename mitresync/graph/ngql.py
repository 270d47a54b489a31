"""nGQL statement templates for the ESP graph schema.

Every statement is a single line terminated by ``;``. String literals are
double-quoted with embedded quotes doubled. Vertex and edge property lists
must match the ``tMitreTechnique``, ``tMitreMitigation``, ``has_subtechnique``,
``part_of`` and ``mitigates`` schema exactly.
"""

from typing import TYPE_CHECKING, Any, List, Sequence

from ..config.loader import GraphDefaults

if TYPE_CHECKING:
    from .planner import SyncPlan

TECHNIQUE_TAG = "tMitreTechnique"
MITIGATION_TAG = "tMitreMitigation"

SUBTECHNIQUE_EDGE = "has_subtechnique"
TACTIC_EDGE = "part_of"
MITIGATES_EDGE = "mitigates"

RULE = "-- ============================================================"


def quote(value: str) -> str:
    """Double-quote a string, doubling any embedded double quotes."""
    return '"' + value.replace('"', '""') + '"'


def format_value(value: Any) -> str:
    """Render a Python value as an nGQL literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return quote(str(value))


def _values(*values: Any) -> str:
    return ", ".join(format_value(v) for v in values)


def insert_technique(technique_id: str, name: str, defaults: GraphDefaults) -> str:
    return (
        f"INSERT VERTEX IF NOT EXISTS {TECHNIQUE_TAG}(Technique_ID, Technique_Name, "
        f"Mitre_Attack_Version, rcelpe, priority, execution_min, execution_max) "
        f"VALUES {quote(technique_id)}:("
        + _values(
            technique_id,
            name,
            defaults.attack_version,
            defaults.rcelpe,
            defaults.priority,
            defaults.execution_min,
            defaults.execution_max,
        )
        + ");"
    )


def insert_subtechnique_edge(parent_id: str, technique_id: str) -> str:
    return f"INSERT EDGE IF NOT EXISTS {SUBTECHNIQUE_EDGE} VALUES {quote(parent_id)}->{quote(technique_id)}@0:();"


def insert_part_of_edge(technique_id: str, tactic: str) -> str:
    return f"INSERT EDGE IF NOT EXISTS {TACTIC_EDGE} VALUES {quote(technique_id)}->{quote(tactic)}@0:();"


def insert_mitigates_edge(mitigation_id: str, technique_id: str, defaults: GraphDefaults) -> str:
    return (
        f"INSERT EDGE IF NOT EXISTS {MITIGATES_EDGE} VALUES "
        f"{quote(mitigation_id)}->{quote(technique_id)}@0:({_values(None, defaults.matrix)});"
    )


def insert_mitigation(mitigation_id: str, name: str, defaults: GraphDefaults) -> str:
    """Statement an operator runs by hand to create a missing mitigation vertex."""
    return (
        f"INSERT VERTEX IF NOT EXISTS {MITIGATION_TAG}(Mitigation_ID, Mitigation_Name, "
        f"Matrix, Description, Mitigation_Version) VALUES {quote(mitigation_id)}:("
        + _values(mitigation_id, name, defaults.matrix, "...", "...")
        + ");"
    )


def mitigation_exists_query(mitigation_id: str) -> str:
    return f"MATCH (m:{MITIGATION_TAG}) WHERE id(m) == {quote(mitigation_id)} RETURN id(m) AS mitigation;"


def find_techniques_query(technique_ids: Sequence[str]) -> str:
    in_clause = ", ".join(quote(t) for t in technique_ids)
    return f"MATCH (t:{TECHNIQUE_TAG}) WHERE id(t) IN [{in_clause}] RETURN collect(id(t)) AS techniques;"


def count_mitigates_query(mitigation_id: str) -> str:
    return (
        f"MATCH (m:{MITIGATION_TAG})-[e:{MITIGATES_EDGE}]->(t) "
        f"WHERE id(m) == {quote(mitigation_id)} RETURN COUNT(e);"
    )


def render_script(plan: "SyncPlan") -> str:
    """Render a plan as a commented nGQL script.

    Steps 1-3 only appear when at least one technique is missing. The
    verification query is emitted as a comment with the expected count.
    """
    lines: List[str] = [
        RULE,
        f"-- nGQL script for mitigation {plan.mitigation_id} ({plan.mitigation_name})",
        RULE,
        "",
    ]

    for step, phase in enumerate(plan.phases, start=1):
        if phase.name != MITIGATES_EDGE and not plan.missing:
            continue
        lines.extend([RULE, f"-- STEP {step}: {phase.title}", RULE, ""])
        lines.extend(s.text for s in phase.statements)
        lines.append("")

    lines.extend([
        RULE,
        f"-- STEP {len(plan.phases) + 1}: Verification query",
        RULE,
        "",
        "-- Run this to verify the mitigation has correct edge count:",
        f"-- {count_mitigates_query(plan.mitigation_id)}",
        f"-- Expected count: {plan.expected_edges}",
        "",
    ])
    return "\n".join(lines) + "\n"

"""Technique hierarchy and tactic mapping helpers."""

from typing import Dict, Optional

SUBTECHNIQUE_SEPARATOR = "."

# Enterprise tactic phase name -> tactic ID
TACTIC_PHASE_TO_ID: Dict[str, str] = {
    "reconnaissance": "TA0043",
    "resource-development": "TA0042",
    "initial-access": "TA0001",
    "execution": "TA0002",
    "persistence": "TA0003",
    "privilege-escalation": "TA0004",
    "defense-evasion": "TA0005",
    "credential-access": "TA0006",
    "discovery": "TA0007",
    "lateral-movement": "TA0008",
    "collection": "TA0009",
    "command-and-control": "TA0011",
    "exfiltration": "TA0010",
    "impact": "TA0040",
}


def is_subtechnique(technique_id: str) -> bool:
    """Return True for dotted sub-technique IDs such as ``T1071.001``."""
    return SUBTECHNIQUE_SEPARATOR in technique_id


def parent_technique_id(technique_id: str) -> str:
    """Return the parent technique ID of a sub-technique.

    IDs without a separator, or whose separator is the first character,
    are returned unchanged.
    """
    idx = technique_id.find(SUBTECHNIQUE_SEPARATOR)
    if idx > 0:
        return technique_id[:idx]
    return technique_id


def tactic_id(phase_name: str) -> Optional[str]:
    """Map a tactic phase name to its tactic ID, or None if unknown."""
    return TACTIC_PHASE_TO_ID.get(phase_name)

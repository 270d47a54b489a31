"""ATT&CK catalog extraction.

Parses the STIX bundle, resolves a mitigation and collects the techniques
it mitigates.
"""

from mitresync.catalog.collector import collect_techniques, resolve
from mitresync.catalog.fetcher import BundleFetcher, read_local
from mitresync.catalog.hierarchy import (
    TACTIC_PHASE_TO_ID,
    is_subtechnique,
    parent_technique_id,
    tactic_id,
)
from mitresync.catalog.models import (
    AttackPattern,
    CourseOfAction,
    ParsedBundle,
    Relationship,
    ResolvedMitigation,
    TechniqueInfo,
)
from mitresync.catalog.parser import parse_bundle
from mitresync.catalog.resolver import resolve_mitigation

__all__ = [
    "AttackPattern",
    "BundleFetcher",
    "CourseOfAction",
    "ParsedBundle",
    "Relationship",
    "ResolvedMitigation",
    "TACTIC_PHASE_TO_ID",
    "TechniqueInfo",
    "collect_techniques",
    "is_subtechnique",
    "parent_technique_id",
    "parse_bundle",
    "read_local",
    "resolve",
    "resolve_mitigation",
    "tactic_id",
]

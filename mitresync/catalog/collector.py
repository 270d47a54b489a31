"""Collect the techniques a mitigation mitigates."""

import logging
from typing import List, Optional, Set

from .models import ParsedBundle, ResolvedMitigation, TechniqueInfo
from .resolver import resolve_mitigation

logger = logging.getLogger(__name__)

MITIGATES = "mitigates"


def collect_techniques(bundle: ParsedBundle, mitigation_stix_id: str) -> List[TechniqueInfo]:
    """Walk ``mitigates`` relationships out of one mitigation.

    Relationships are scanned in bundle order. Targets that are not known
    techniques are dropped. When two relationships reach the same external
    ID the first one wins. The result is sorted by external ID using plain
    string ordering, so ``T1071 < T1071.001 < T1565``.

    Args:
        bundle: Parsed ATT&CK bundle
        mitigation_stix_id: STIX id of the mitigation (``course-of-action--...``)

    Returns:
        Deduplicated, sorted techniques
    """
    results: List[TechniqueInfo] = []
    seen: Set[str] = set()

    for rel in bundle.relationships:
        if rel.relationship_type != MITIGATES or rel.source_ref != mitigation_stix_id:
            continue

        technique = bundle.techniques.get(rel.target_ref)
        if technique is None:
            logger.debug(f"Skipping dangling mitigates target {rel.target_ref}")
            continue

        ext = technique.external_id
        if ext in seen:
            logger.debug(f"Skipping duplicate technique: {ext}")
            continue
        seen.add(ext)

        results.append(TechniqueInfo(external_id=ext, name=technique.name, tactics=technique.tactics))

    results.sort(key=lambda t: t.external_id)
    return results


def resolve(
    bundle: ParsedBundle,
    mitigation_id: Optional[str] = None,
    name: Optional[str] = None,
) -> ResolvedMitigation:
    """Resolve a mitigation and collect everything it mitigates."""
    mitigation = resolve_mitigation(bundle, mitigation_id=mitigation_id, name=name)
    techniques = collect_techniques(bundle, mitigation.id)

    logger.info(f"{mitigation.name}: {len(techniques)} techniques mitigated")

    return ResolvedMitigation(
        stix_id=mitigation.id,
        external_id=mitigation.external_id or "",
        name=mitigation.name,
        techniques=techniques,
        total_mitigations=len(bundle.mitigations),
    )

"""Mitigation lookup by ATT&CK ID or by name."""

import logging
from typing import Optional

from ..exceptions import MitigationNotFoundError
from .models import CourseOfAction, ParsedBundle

logger = logging.getLogger(__name__)


def resolve_mitigation(
    bundle: ParsedBundle,
    mitigation_id: Optional[str] = None,
    name: Optional[str] = None,
) -> CourseOfAction:
    """Find exactly one mitigation by external ID or by display name.

    Both comparisons are case-insensitive exact matches; the name query is
    stripped of surrounding whitespace first. If several mitigations match,
    the first one in bundle order is returned.

    Args:
        bundle: Parsed ATT&CK bundle
        mitigation_id: External ID such as ``M1037``
        name: Display name such as ``Filter Network Traffic``

    Raises:
        ValueError: If neither or both of mitigation_id and name are given
        MitigationNotFoundError: If nothing matches
    """
    if bool(mitigation_id) == bool(name):
        raise ValueError("exactly one of mitigation_id or name is required")

    if mitigation_id:
        wanted = mitigation_id.casefold()
        for mitigation in bundle.mitigations.values():
            ext = mitigation.external_id
            if ext and ext.casefold() == wanted:
                logger.debug(f"Resolved {mitigation_id} to {mitigation.id}")
                return mitigation
        raise MitigationNotFoundError(
            f"mitigation {mitigation_id} not found in ATT&CK data", query=mitigation_id
        )

    target = name.strip()
    wanted = target.casefold()
    for mitigation in bundle.mitigations.values():
        if mitigation.name.casefold() == wanted:
            logger.debug(f"Resolved name {target!r} to {mitigation.id}")
            return mitigation
    raise MitigationNotFoundError(
        f"mitigation name {target!r} not found (check spelling)", query=target
    )

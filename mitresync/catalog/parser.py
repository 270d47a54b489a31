"""STIX bundle parsing.

Turns the raw enterprise-attack bundle into mitigations, techniques and
relationships. Parsing is lenient: ATT&CK bundles are not versioned against
this tool, so individual records that do not decode are skipped and only an
undecodable envelope is fatal.
"""

import json
import logging
from typing import Any, Optional

from pydantic import ValidationError

from ..exceptions import BundleParseError
from .models import AttackPattern, CourseOfAction, ParsedBundle, Relationship

logger = logging.getLogger(__name__)

COURSE_OF_ACTION = "course-of-action"
ATTACK_PATTERN = "attack-pattern"
RELATIONSHIP = "relationship"


def parse_bundle(raw: bytes) -> ParsedBundle:
    """Parse a STIX bundle.

    Args:
        raw: Bundle bytes as downloaded or read from cache

    Returns:
        ParsedBundle with mitigations and techniques keyed by STIX id

    Raises:
        BundleParseError: If the envelope is not a JSON object with an object list
    """
    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise BundleParseError(f"error parsing bundle JSON: {e}") from e

    if not isinstance(data, dict):
        raise BundleParseError(
            f"error parsing bundle JSON: expected an object, got {type(data).__name__}"
        )

    objects = data.get('objects') or []
    if not isinstance(objects, list):
        raise BundleParseError("error parsing bundle JSON: 'objects' is not a list")

    bundle = ParsedBundle()
    skipped = 0

    for obj in objects:
        obj_type = _object_type(obj)
        if obj_type is None:
            skipped += 1
            continue

        try:
            if obj_type == COURSE_OF_ACTION:
                mitigation = CourseOfAction.model_validate(obj)
                bundle.mitigations[mitigation.id] = mitigation
            elif obj_type == ATTACK_PATTERN:
                technique = AttackPattern.model_validate(obj)
                bundle.techniques[technique.id] = technique
            elif obj_type == RELATIONSHIP:
                bundle.relationships.append(Relationship.model_validate(obj))
        except ValidationError as e:
            skipped += 1
            logger.debug(f"Skipping malformed {obj_type} {obj.get('id', '?')}: {e.error_count()} errors")

    if skipped:
        logger.debug(f"Skipped {skipped} malformed bundle objects")

    logger.info(
        f"Parsed bundle: {len(bundle.mitigations)} mitigations, "
        f"{len(bundle.techniques)} techniques, "
        f"{len(bundle.relationships)} relationships"
    )
    return bundle


def _object_type(obj: Any) -> Optional[str]:
    """Read only the type discriminator; None when the object is malformed."""
    if not isinstance(obj, dict):
        return None
    obj_type = obj.get('type', '')
    if not isinstance(obj_type, str):
        return None
    return obj_type

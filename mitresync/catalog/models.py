"""STIX record models and resolved result types.

The pydantic models decode the three STIX object kinds this tool reads.
Every field is defaulted and a JSON null reads as that default, so sparse
catalog entries still load, while a field of the wrong type fails validation
and the record is skipped.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from .hierarchy import is_subtechnique


# Source tag used by ATT&CK for its own identifiers and kill chain
ATTACK_SOURCE_NAME = "mitre-attack"

TECHNIQUE_STIX_PREFIX = "attack-pattern--"


class _STIXModel(BaseModel):
    """Base for decoded STIX records: unknown keys ignored, null read as the field default."""
    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return value


class ExternalReference(_STIXModel):
    """Reference carrying the human-readable ATT&CK ID."""
    source_name: str = ""
    external_id: str = ""
    url: Optional[str] = None


class KillChainPhase(_STIXModel):
    """Kill chain phase; phase_name is the tactic (e.g. "execution")."""
    kill_chain_name: str = ""
    phase_name: str = ""


class _STIXObject(_STIXModel):
    type: str = ""
    id: str = ""


class CourseOfAction(_STIXObject):
    """Mitigation (course-of-action)."""
    name: str = ""
    external_references: List[ExternalReference] = Field(default_factory=list)

    @property
    def external_id(self) -> Optional[str]:
        return extract_external_id(self.external_references)


class AttackPattern(_STIXObject):
    """Technique or sub-technique (attack-pattern)."""
    name: str = ""
    external_references: List[ExternalReference] = Field(default_factory=list)
    kill_chain_phases: List[KillChainPhase] = Field(default_factory=list)

    @property
    def external_id(self) -> str:
        """ATT&CK ID, falling back to the STIX id without its type prefix."""
        ext = extract_external_id(self.external_references)
        if not ext:
            ext = self.id[len(TECHNIQUE_STIX_PREFIX):] if self.id.startswith(TECHNIQUE_STIX_PREFIX) else self.id
        return ext

    @property
    def tactics(self) -> List[str]:
        return [
            phase.phase_name
            for phase in self.kill_chain_phases
            if phase.kill_chain_name == ATTACK_SOURCE_NAME
        ]


class Relationship(_STIXObject):
    """Directed relationship; only "mitigates" is used."""
    relationship_type: str = ""
    source_ref: str = ""
    target_ref: str = ""


def extract_external_id(refs: List[ExternalReference]) -> Optional[str]:
    """Return the first non-empty ATT&CK external ID from a list of references.

    Only references whose source name is ``mitre-attack`` (any case) count;
    alternate numbering schemes such as CAPEC or NIST are ignored.
    """
    for ref in refs:
        if ref.source_name.lower() == ATTACK_SOURCE_NAME and ref.external_id:
            return ref.external_id
    return None


@dataclass
class ParsedBundle:
    """Typed view of a STIX bundle, keyed by STIX id in bundle order."""
    mitigations: Dict[str, CourseOfAction] = field(default_factory=dict)
    techniques: Dict[str, AttackPattern] = field(default_factory=dict)
    relationships: List[Relationship] = field(default_factory=list)


@dataclass
class TechniqueInfo:
    """A technique mitigated by the resolved mitigation."""
    external_id: str
    name: str
    tactics: List[str] = field(default_factory=list)

    @property
    def is_subtechnique(self) -> bool:
        return is_subtechnique(self.external_id)

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {"external_id": self.external_id, "name": self.name}
        if self.tactics:
            record["tactics"] = list(self.tactics)
        return record


@dataclass
class ResolvedMitigation:
    """A mitigation together with the sorted, deduplicated techniques it mitigates."""
    stix_id: str
    external_id: str
    name: str
    techniques: List[TechniqueInfo] = field(default_factory=list)
    total_mitigations: int = 0

    @property
    def technique_ids(self) -> List[str]:
        return [t.external_id for t in self.techniques]

    def records(self) -> List[Dict[str, Any]]:
        return [t.to_record() for t in self.techniques]

"""Global test fixtures for the mitresync test suite."""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import pytest

from mitresync.catalog import ParsedBundle, parse_bundle
from mitresync.exceptions import OracleError
from mitresync.graph import GraphOracle


# ==========================================
# Pytest Configuration
# ==========================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")


# ==========================================
# Sample ATT&CK Bundle
# ==========================================

def _attack_ref(external_id: str, source_name: str = "mitre-attack") -> Dict[str, Any]:
    return {
        "source_name": source_name,
        "external_id": external_id,
        "url": f"https://attack.mitre.org/{external_id}",
    }


def _mitigation(stix_id: str, name: str, external_id: Optional[str]) -> Dict[str, Any]:
    refs = [_attack_ref(external_id)] if external_id else [_attack_ref("SC-7", source_name="NIST 800-53")]
    return {
        "type": "course-of-action",
        "id": stix_id,
        "name": name,
        "external_references": refs,
    }


def _technique(stix_id: str, name: str, external_id: Optional[str], phases: List[str], **extra) -> Dict[str, Any]:
    obj = {
        "type": "attack-pattern",
        "id": stix_id,
        "name": name,
        "external_references": [_attack_ref(external_id)] if external_id else [],
        "kill_chain_phases": [
            {"kill_chain_name": "mitre-attack", "phase_name": phase} for phase in phases
        ],
    }
    obj.update(extra)
    return obj


def _mitigates(source: str, target: str, rel_type: str = "mitigates") -> Dict[str, Any]:
    return {
        "type": "relationship",
        "id": f"relationship--{source[-4:]}-{target[-8:]}",
        "relationship_type": rel_type,
        "source_ref": source,
        "target_ref": target,
    }


M1037 = "course-of-action--m1037"
M1031 = "course-of-action--m1031"
T1071 = "attack-pattern--t1071"
T1071_001 = "attack-pattern--t1071-001"
T1565 = "attack-pattern--t1565"
T1573 = "attack-pattern--t1573"


@pytest.fixture
def sample_bundle_data() -> Dict[str, Any]:
    """Small enterprise-attack bundle exercising the interesting parser paths."""
    t1573 = _technique(T1573, "Encrypted Channel", None, ["command-and-control"])
    t1573["external_references"] = [
        _attack_ref("CAPEC-1", source_name="capec"),
        _attack_ref("T1573", source_name="MITRE-ATTACK"),
    ]
    t1573["kill_chain_phases"].append({"kill_chain_name": "lockheed", "phase_name": "delivery"})

    return {
        "type": "bundle",
        "id": "bundle--sample",
        "objects": [
            _mitigation(M1037, "Filter Network Traffic", "M1037"),
            _mitigation(M1031, "Network Intrusion Prevention", "M1031"),
            _mitigation("course-of-action--nist-only", "Boundary Protection", None),
            _technique(T1071, "Application Layer Protocol", "T1071", ["command-and-control"]),
            _technique(T1071_001, "Web Protocols", "T1071.001", ["command-and-control"]),
            _technique(T1565, "Data Manipulation", "T1565", ["impact"]),
            t1573,
            _technique("attack-pattern--no-ref", "Unnumbered Technique", None, ["made-up-phase"]),
            # Relationships in deliberately unsorted order
            _mitigates(M1037, T1573),
            _mitigates(M1037, T1565),
            _mitigates(M1037, T1071),
            _mitigates(M1037, T1565),
            _mitigates(M1037, "attack-pattern--dangling"),
            _mitigates(M1037, T1071_001, rel_type="uses"),
            _mitigates(M1031, T1071_001),
            _mitigates(M1031, T1071),
            # Records that must be skipped
            {"type": "attack-pattern", "id": "attack-pattern--bad", "name": 42},
            {"type": 7, "id": "weird--1"},
            "not-an-object",
            {"type": "identity", "id": "identity--mitre", "name": "The MITRE Corporation"},
            {"type": "x-mitre-tactic", "id": "x-mitre-tactic--c2", "name": "Command and Control"},
        ],
    }


@pytest.fixture
def sample_bundle_bytes(sample_bundle_data) -> bytes:
    return json.dumps(sample_bundle_data).encode("utf-8")


@pytest.fixture
def sample_bundle(sample_bundle_bytes) -> ParsedBundle:
    return parse_bundle(sample_bundle_bytes)


@pytest.fixture
def bundle_file(tmp_path, sample_bundle_bytes) -> Path:
    path = tmp_path / "enterprise-attack.json"
    path.write_bytes(sample_bundle_bytes)
    return path


# ==========================================
# Fake Graph Oracle
# ==========================================

_VERTEX_ID = re.compile(r'^INSERT VERTEX IF NOT EXISTS (\w+)\(.*?\) VALUES "((?:[^"]|"")*)":')
_EDGE = re.compile(r'^INSERT EDGE IF NOT EXISTS (\w+) VALUES "((?:[^"]|"")*)"->"((?:[^"]|"")*)"@0:')


class FakeGraphOracle(GraphOracle):
    """In-memory graph store that understands the insert statements it is sent."""

    def __init__(
        self,
        mitigations: Sequence[str] = (),
        techniques: Sequence[str] = (),
        fail_on: Optional[str] = None,
    ):
        self.mitigations: Set[str] = set(mitigations)
        self.techniques: Set[str] = set(techniques)
        self.edges: Set[Tuple[str, str, str]] = set()
        self.executed: List[str] = []
        self.fail_on = fail_on
        self.existence_queries = 0

    def exists(self, node_id: str) -> bool:
        self.existence_queries += 1
        return node_id in self.mitigations

    def existing_subset(self, node_ids: Sequence[str]) -> Set[str]:
        self.existence_queries += 1
        return {node_id for node_id in node_ids if node_id in self.techniques}

    def execute(self, statement: str) -> int:
        if self.fail_on and self.fail_on in statement:
            raise OracleError("execute statement: SemanticError: boom", operation="execute statement")

        self.executed.append(statement)

        vertex = _VERTEX_ID.match(statement)
        if vertex:
            tag, vid = vertex.groups()
            (self.techniques if tag == "tMitreTechnique" else self.mitigations).add(vid)
            return 0

        edge = _EDGE.match(statement)
        if edge:
            self.edges.add(edge.groups())
        return 0

    def count_mitigates_edges(self, mitigation_id: str) -> int:
        return sum(1 for name, src, _ in self.edges if name == "mitigates" and src == mitigation_id)


@pytest.fixture
def fake_oracle() -> FakeGraphOracle:
    """Oracle holding the M1037 mitigation vertex and no techniques."""
    return FakeGraphOracle(mitigations=["M1037", "M1031"])


@pytest.fixture
def make_oracle():
    """Factory for oracles with a custom initial state."""
    return FakeGraphOracle

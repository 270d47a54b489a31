"""mitresync: MITRE ATT&CK mitigation to Nebula Graph synchronizer.

Resolves an ATT&CK mitigation to every technique and sub-technique it
mitigates, renders the result, and stages idempotent nGQL statements that
bring a Nebula Graph space in line with the catalog.
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Core imports for public API
from mitresync.catalog import ResolvedMitigation, TechniqueInfo, parse_bundle, resolve
from mitresync.config.loader import MitreSyncConfig, load_config
from mitresync.graph import MitigationSync, NebulaOracle, build_plan, render_script

__all__ = [
    "__version__",
    "__license__",
    "MitigationSync",
    "MitreSyncConfig",
    "NebulaOracle",
    "ResolvedMitigation",
    "TechniqueInfo",
    "build_plan",
    "load_config",
    "parse_bundle",
    "render_script",
    "resolve",
]

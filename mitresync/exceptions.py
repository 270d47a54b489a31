"""Exception classes for mitresync."""

from typing import Optional


class MitreSyncError(Exception):
    """Base exception for all mitresync errors."""
    DEFAULT_CODE = "MITRESYNC_ERROR"

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.DEFAULT_CODE


class ConfigurationError(MitreSyncError):
    """Error in configuration loading or validation."""
    DEFAULT_CODE = "CONFIG_ERROR"

    def __init__(self, message: str, config_path: Optional[str] = None, error_code: Optional[str] = None):
        super().__init__(message, error_code or self.DEFAULT_CODE)
        self.config_path = config_path


class BundleFetchError(MitreSyncError):
    """The ATT&CK bundle could not be read from cache, disk or network."""
    DEFAULT_CODE = "BUNDLE_FETCH_ERROR"

    def __init__(self, message: str, source: Optional[str] = None, error_code: Optional[str] = None):
        super().__init__(message, error_code or self.DEFAULT_CODE)
        self.source = source


class BundleParseError(MitreSyncError):
    """The bundle envelope is not a decodable STIX bundle."""
    DEFAULT_CODE = "BUNDLE_PARSE_ERROR"


class MitigationNotFoundError(MitreSyncError):
    """No mitigation matches the requested external ID or name."""
    DEFAULT_CODE = "MITIGATION_NOT_FOUND"

    def __init__(self, message: str, query: Optional[str] = None, error_code: Optional[str] = None):
        super().__init__(message, error_code or self.DEFAULT_CODE)
        self.query = query


class OracleError(MitreSyncError):
    """Connection or query failure against the graph store."""
    DEFAULT_CODE = "ORACLE_ERROR"

    def __init__(self, message: str, operation: Optional[str] = None, error_code: Optional[str] = None):
        super().__init__(message, error_code or self.DEFAULT_CODE)
        self.operation = operation


class MitigationMissingError(MitreSyncError):
    """The mitigation vertex must exist in the graph before edges are inserted."""
    DEFAULT_CODE = "MITIGATION_MISSING"

    def __init__(self, message: str, mitigation_id: Optional[str] = None, error_code: Optional[str] = None):
        super().__init__(message, error_code or self.DEFAULT_CODE)
        self.mitigation_id = mitigation_id


class StatementExecutionError(MitreSyncError):
    """A plan statement failed; statements before it remain applied."""
    DEFAULT_CODE = "STATEMENT_FAILED"

    def __init__(
        self,
        message: str,
        statement: Optional[str] = None,
        applied: int = 0,
        error_code: Optional[str] = None,
    ):
        super().__init__(message, error_code or self.DEFAULT_CODE)
        self.statement = statement
        self.applied = applied


class SyncStateError(MitreSyncError):
    """A sync operation was called out of order."""
    DEFAULT_CODE = "SYNC_STATE_ERROR"

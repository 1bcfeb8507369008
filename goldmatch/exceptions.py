"""
GoldMatch exception hierarchy.
"""
from typing import Optional, Any, Dict


class GoldMatchError(Exception):
    """Base exception class for all GoldMatch errors."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(GoldMatchError):
    """Raised when a resolution configuration is invalid.
    
    Always raised at configuration-load time, before any record is
    processed, and fatal to the run.
    """
    pass


class MalformedRecordError(GoldMatchError):
    """Raised when a record cannot take part in a resolution run.
    
    The pipeline catches it per record, excludes the record and reports
    it alongside the successful results.
    """
    
    def __init__(
        self,
        message: str,
        record_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.record_id = record_id
        super().__init__(message, details)


class ResolutionCancelled(GoldMatchError):
    """Raised when a run is cancelled between buckets."""
    pass

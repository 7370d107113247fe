"""Custom exception hierarchy for statbridge.

This module provides the exception types raised across the fetch layer,
the cube decoders, the structure resolver and the unit normalizer. Using
specific exception types enables:
- Precise handling in the provider fallback loop
- Telling "malformed upstream response" apart from "no data"
- Consistent error payloads for callers

Exception Hierarchy:
    StatBridgeError (base)
    ├── ConfigurationError
    ├── DecodeError
    ├── HttpError
    ├── UnresolvedStructureError
    ├── UnitConversionError
    └── DataNotAvailableError
"""
from __future__ import annotations

from typing import Optional, Dict, Any


class StatBridgeError(Exception):
    """Base exception for all statbridge errors.

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for diagnostics payloads."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(StatBridgeError):
    """Raised when a reference table or mapping file cannot be loaded.

    Examples:
        - Equivalence file is not a mapping
        - Region reference table missing a required column
    """
    pass


class DecodeError(StatBridgeError):
    """Raised when a cube payload is malformed.

    Examples:
        - Missing dimension metadata
        - Size/value-count mismatch in a JSON-stat document
        - Non-integer segment in an SDMX-JSON observation key

    Never retried.
    """

    def __init__(
        self,
        message: str,
        fmt: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.format = fmt
        details = details or {}
        if fmt:
            details["format"] = fmt
        super().__init__(message, code, details)


class HttpError(StatBridgeError):
    """Raised for a non-2xx response or a transport failure.

    Attributes:
        status: HTTP status code, or None for transport failures and timeouts
        reason: Reason phrase or transport error description
        url: Requested URL
    """

    def __init__(
        self,
        status: Optional[int],
        reason: str,
        url: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.status = status
        self.reason = reason
        self.url = url
        details = details or {}
        details.update({"status": status, "url": url})
        if status is None:
            message = f"{reason} for {url}"
        else:
            message = f"{status} {reason} for {url}".replace("  ", " ")
        super().__init__(message, code, details)

    @property
    def is_rate_limited(self) -> bool:
        return self.status == 429 or "too many requests" in self.message.lower()


class UnresolvedStructureError(StatBridgeError):
    """Raised when an SDMX structure or codelist reference cannot be resolved.

    Attributes:
        flow_id: Dataflow whose structure was being resolved
    """

    def __init__(
        self,
        message: str,
        flow_id: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.flow_id = flow_id
        details = details or {}
        if flow_id:
            details["flow_id"] = flow_id
        super().__init__(message, code, details)


class UnitConversionError(StatBridgeError):
    """Raised when two units are not commensurable (e.g. count to percent)."""

    def __init__(self, source: str, target: str):
        self.source = source
        self.target = target
        super().__init__(
            f"Cannot convert from {source} to {target}",
            details={"from": source, "to": target},
        )


class DataNotAvailableError(StatBridgeError):
    """Raised by a provider when the upstream answered but holds no usable data.

    Attributes:
        provider: Provider key that raised the error
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.provider = provider
        details = details or {}
        if provider:
            details["provider"] = provider
        super().__init__(message, code, details)

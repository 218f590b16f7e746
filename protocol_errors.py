#!/usr/bin/env python3
"""
Exceptions for meeting protocol generation.

All protocol-specific exceptions inherit from ProtocolError. Encoding and
assembly errors abort the whole synthesis; fetch and delivery errors are
recoverable by the caller (retry or offer another way to get the file).
"""

from typing import Any, Optional


class ProtocolError(Exception):
    """
    Base exception for all protocol generation errors.

    Attributes:
        message: Human-readable error message
        details: Additional error context (voter id, agenda item, part name...)
        recoverable: Whether the caller can reasonably retry
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class InvalidSnapshot(ProtocolError):
    """
    The meeting data snapshot is incomplete or violates an invariant.

    Examples:
        - Missing quorum flag or agenda item tally
        - Voted area larger than total area
        - Duplicate agenda item order
    """

    def __init__(self, message: str, field_name: Optional[str] = None, **details: Any):
        if field_name:
            details["field"] = field_name
        super().__init__(message, details=details, recoverable=False)


class PayloadTooLarge(ProtocolError):
    """An identity payload does not fit into a QR code at the chosen error correction level."""

    def __init__(self, message: str, length: int, error_correction: str, **details: Any):
        details.update({"length": length, "error_correction": error_correction})
        super().__init__(message, details=details, recoverable=False)


class ImageEncodingFailed(ProtocolError):
    """Generating a signature image failed for a reason other than capacity."""

    def __init__(self, message: str, logical_id: str, **details: Any):
        details["logical_id"] = logical_id
        super().__init__(message, details=details, recoverable=False)


class PackageIntegrityError(ProtocolError):
    """
    The DOCX package graph is inconsistent.

    Always a programming error: an undeclared part or a dangling relationship
    must never be shipped.
    """

    def __init__(self, message: str, **details: Any):
        super().__init__(message, details=details, recoverable=False)


class MissingRelationshipTarget(PackageIntegrityError):
    """The markup references an image that has no corresponding part."""

    def __init__(self, logical_id: str):
        super().__init__(
            f"Markup references image '{logical_id}' with no relationship target",
            logical_id=logical_id,
        )


class DuplicatePart(PackageIntegrityError):
    """The same part name was written twice."""

    def __init__(self, part_name: str):
        super().__init__(f"Part written twice: {part_name}", part_name=part_name)


class UpstreamFetchFailed(ProtocolError):
    """The protocol data snapshot could not be fetched from the backend."""

    def __init__(self, message: str, meeting_id: str, status_code: Optional[int] = None):
        details: dict[str, Any] = {"meeting_id": meeting_id}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details=details, recoverable=True)


class DeliveryBlocked(ProtocolError):
    """The user agent refused every way of handing over the document."""

    def __init__(self, message: str, file_name: str, **details: Any):
        details["file_name"] = file_name
        super().__init__(message, details=details, recoverable=True)

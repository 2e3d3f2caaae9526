"""
Custom Exceptions for the FRA Patta platform
=============================================

Raise these from services and endpoints instead of generic Exception so the
API layer can map them to a status code and a structured JSON body.

Usage:
    from fra_patta.core.exceptions import PattaNotFoundError

    if not patta:
        raise PattaNotFoundError(patta_id)
"""

from typing import Optional, Any, Dict, List


class FraPattaError(Exception):
    """Base exception for all platform errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(FraPattaError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class AuthorizationError(FraPattaError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="NOT_AUTHORIZED")


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(FraPattaError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class NGONotFoundError(ResourceNotFoundError):
    def __init__(self, ngo_id: str):
        super().__init__("NGO", ngo_id)


class PattaNotFoundError(ResourceNotFoundError):
    def __init__(self, patta_id: str):
        super().__init__("Patta", patta_id)


class AssignmentNotFoundError(ResourceNotFoundError):
    def __init__(self, assignment_id: str):
        super().__init__("Assignment", assignment_id)


class PolicyNotFoundError(ResourceNotFoundError):
    def __init__(self, policy_id: str):
        super().__init__("Policy", policy_id)


class PolicyFileMissingError(ResourceNotFoundError):
    """Policy row exists but its file is gone from disk"""

    def __init__(self, policy_id: str):
        super().__init__("Policy file", policy_id)
        self.message = "Policy file not found on server"


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(FraPattaError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class InvalidFileTypeError(ValidationError):
    """File type not allowed"""

    def __init__(self, file_type: str, allowed_types: List[str]):
        super().__init__(
            f"Invalid file type '{file_type}'. Allowed types: {', '.join(allowed_types)}"
        )
        self.code = "INVALID_FILE_TYPE"
        self.details = {"file_type": file_type, "allowed_types": allowed_types}


class FileTooLargeError(ValidationError):
    """Uploaded file exceeds MAX_UPLOAD_SIZE"""

    def __init__(self, max_size: int):
        super().__init__(
            f"File too large. Maximum size allowed: {max_size // (1024 * 1024)}MB"
        )
        self.code = "FILE_TOO_LARGE"
        self.details = {"max_size_bytes": max_size}


class InvalidStatusTransitionError(ValidationError):
    """Requested assignment status change is not allowed"""

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot change assignment status from '{current}' to '{requested}'",
            field="status"
        )
        self.code = "INVALID_STATUS_TRANSITION"
        self.details.update({"current_status": current, "requested_status": requested})


class UnapprovedNGOError(ValidationError):
    """Assignment target is not an approved NGO"""

    def __init__(self, ngo_id: str):
        super().__init__("Invalid or unapproved NGO", field="ngo_id")
        self.code = "INVALID_NGO"
        self.details["ngo_id"] = ngo_id


class DuplicateRegistrationError(ValidationError):
    def __init__(self, email: str):
        super().__init__("NGO already registered with this email", field="email")
        self.code = "ALREADY_REGISTERED"


# ============================================
# Extraction Errors (never surfaced over HTTP)
# ============================================

class ExtractionError(FraPattaError):
    """Text could not be extracted from an uploaded document"""

    def __init__(self, message: str, file_path: Optional[str] = None):
        super().__init__(message, code="EXTRACTION_FAILED")
        if file_path:
            self.details["file_path"] = file_path


class UnsupportedDocumentError(ExtractionError):
    def __init__(self, extension: str, file_path: Optional[str] = None):
        super().__init__(f"Unsupported document type '{extension}'", file_path)
        self.code = "UNSUPPORTED_DOCUMENT"


# ============================================
# Storage Errors
# ============================================

class StorageError(FraPattaError):
    """Storage operation failed"""

    def __init__(self, message: str):
        super().__init__(message, code="STORAGE_ERROR")


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: FraPattaError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }

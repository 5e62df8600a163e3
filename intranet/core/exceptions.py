from typing import Any, Dict, List, Optional


class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class AccessDeniedError(AppException):
    """Custom permission error. Named AccessDeniedError to avoid shadowing Python's built-in PermissionError."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED"
        )


class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: Any = None):
        message = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND",
            details={"entity": entity, "id": entity_id}
        )


class ConflictError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT",
            details=details
        )


class InvalidTransitionError(AppException):
    def __init__(self, entity_type: str, from_status: str, to_status: str, valid_next: List[str]):
        valid_str = ", ".join(valid_next) if valid_next else "none (terminal state)"
        super().__init__(
            message=(
                f'Invalid status transition for {entity_type}: "{from_status}" -> "{to_status}". '
                f'Valid transitions from "{from_status}": {valid_str}'
            ),
            status_code=409,
            error_code="INVALID_STATUS_TRANSITION",
            details={"entity_type": entity_type, "from": from_status, "to": to_status, "valid_next": valid_next}
        )


class CircularReportingError(AppException):
    def __init__(self, message: str = "Circular reporting chain detected"):
        super().__init__(
            message=message,
            status_code=422,
            error_code="CIRCULAR_REPORTING"
        )

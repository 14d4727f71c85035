from typing import Any, Dict, Optional


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


class ValidationError(AppException):
    """Missing or malformed input that the request schema could not catch."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
            details=details
        )


class NotFoundError(AppException):
    def __init__(self, message: str = "Not found", error_code: str = "NOT_FOUND"):
        super().__init__(
            message=message,
            status_code=404,
            error_code=error_code
        )


class NoActiveStructureError(NotFoundError):
    def __init__(self, user_id: int):
        super().__init__(
            message="No active salary structure found for this employee",
            error_code="NO_ACTIVE_STRUCTURE"
        )
        self.user_id = user_id


class ConflictError(AppException):
    def __init__(
        self,
        message: str = "Conflict",
        error_code: str = "CONFLICT",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=409,
            error_code=error_code,
            details=details
        )


class PayslipAlreadyExistsError(ConflictError):
    """Raised when a payslip for the same employee and period is already stored."""
    def __init__(self, existing_payslip_id: Optional[int]):
        super().__init__(
            message="Payslip already exists for this period",
            error_code="PAYSLIP_ALREADY_EXISTS",
            details={"existing_payslip_id": existing_payslip_id}
        )
        self.existing_payslip_id = existing_payslip_id


class InvalidStatusTransitionError(ConflictError):
    def __init__(self, current: str, target: str):
        super().__init__(
            message=f"Cannot change payslip status from {current} to {target}",
            error_code="INVALID_STATUS_TRANSITION",
            details={"from": current, "to": target}
        )


class BusinessRuleError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=400,
            error_code="BUSINESS_RULE_VIOLATION",
            details=details
        )

from typing import List

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class PreconditionError(ServiceError):
    """Student record lacks an assignment the breakdown depends on."""

    def __init__(self, missing_fields: List[str]) -> None:
        self.missing_fields = list(missing_fields)
        super().__init__(
            "Student is missing required assignment(s): "
            + ", ".join(self.missing_fields)
            + ". Please update the student profile first.",
            status.HTTP_422_UNPROCESSABLE_ENTITY,
        )


class FeePlanNotConfiguredError(ServiceError):
    """No active fee structures exist for the student's class and category head."""

    def __init__(self, class_label: str, category_label: str) -> None:
        super().__init__(
            f'No fee plan configured for class "{class_label}" and category "{category_label}". '
            "Please create fee plans for this class and category combination first.",
            status.HTTP_422_UNPROCESSABLE_ENTITY,
        )


class AllocationValidationError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class UpstreamError(ServiceError):
    """The fee-management API failed or returned an unusable payload."""

    def __init__(self, message: str, status_code: int = status.HTTP_502_BAD_GATEWAY) -> None:
        super().__init__(message, status_code)

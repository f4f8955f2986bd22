class AppError(Exception):
    """Base class for all engine exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ValidationError(AppError):
    """Raised when a request is malformed before any scheduling work starts."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class NotFoundError(AppError):
    """Raised when a referenced schedule, course, room or scenario does not exist."""
    def __init__(self, resource_type: str, resource_id: str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )

class ConstraintViolation(AppError):
    """Raised when a batch of manual changes would introduce collisions."""
    def __init__(self, message: str, conflicts: list):
        self.conflicts = list(conflicts)
        super().__init__(
            message,
            status_code=409,
            details={"conflicts": [conflict.model_dump(by_alias=True) for conflict in self.conflicts]},
        )

class ConcurrentModificationError(AppError):
    """Raised when a timetable was saved by someone else since it was loaded."""
    def __init__(self, scope: str, expected_version: int, current_version: int):
        super().__init__(
            f"Timetable for {scope} changed concurrently "
            f"(expected version {expected_version}, found {current_version})",
            status_code=409,
            details={"expected_version": expected_version, "current_version": current_version},
        )

class ConfigurationError(AppError):
    """Raised when engine configuration is invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)

from typing import Any, Dict, List, Optional


class ConfigError(Exception):
    """Raised when the environment does not describe a usable configuration"""


class TaskValidationError(Exception):
    """A task violates one or more field rules"""

    def __init__(self, messages: List[str]):
        self.messages = list(messages)
        super().__init__(self.messages[0] if self.messages else "Validation failed")


class DuplicateKeyError(Exception):
    """The unique index on title_hash rejected a write"""


class ApiError(Exception):
    """Error that is rendered into the response envelope"""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[List[str]] = None,
        existing_task_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details
        self.existing_task_id = existing_task_id

    def to_body(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"message": self.message, "code": self.code}
        if self.details is not None:
            error["details"] = self.details
        if self.existing_task_id is not None:
            error["existingTaskId"] = self.existing_task_id
        return {"success": False, "error": error}


def validation_error(messages: List[str]) -> ApiError:
    return ApiError(400, "VALIDATION_ERROR", messages[0], details=messages)


def invalid_id() -> ApiError:
    return ApiError(400, "INVALID_ID", "Invalid task ID format")


def not_found() -> ApiError:
    return ApiError(404, "NOT_FOUND", "Task not found")


def duplicate_task(message: str, existing_task_id: Optional[str] = None) -> ApiError:
    return ApiError(409, "DUPLICATE_TASK", message, existing_task_id=existing_task_id)


def server_error() -> ApiError:
    return ApiError(500, "SERVER_ERROR", "Server Error")

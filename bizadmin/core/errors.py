from typing import List, Optional


class BizAdminError(Exception):
    """Base class for controlled application errors."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RecordValidationError(BizAdminError):
    status_code = 422

    def __init__(self, messages: List[str]):
        super().__init__("; ".join(messages) or "Invalid record")
        self.messages = list(messages)


class RecordNotFound(BizAdminError):
    status_code = 404

    def __init__(self, collection: str, doc_id: str):
        super().__init__("Record not found.")
        self.collection = collection
        self.doc_id = doc_id


class UnknownEntity(BizAdminError):
    status_code = 404

    def __init__(self, branch: str):
        super().__init__(f"Unknown entity '{branch}'")
        self.branch = branch


class DuplicateTemplateName(BizAdminError):
    status_code = 409

    def __init__(self, name: str):
        super().__init__(f"A template named “{name}” already exists. Choose a different name.")
        self.name = name


class SubmissionInProgress(BizAdminError):
    status_code = 409

    def __init__(self, action: str):
        super().__init__(f"A {action} submission is already in progress.")
        self.action = action


class BackendError(BizAdminError):
    """Raised by document stores. ``code`` follows the backend's error codes
    (``permission-denied``, ``unavailable``, ``deadline-exceeded``, ``not-found``...)."""

    status_code = 502

    def __init__(self, code: str, message: Optional[str] = None):
        super().__init__(message or code)
        self.code = code


# User-facing messages for backend failures on the invoice template path
BACKEND_MESSAGES = {
    "permission-denied": "You do not have permission to save templates. Please check your access.",
    "unavailable": "Service temporarily unavailable. Please retry in a moment.",
    "deadline-exceeded": "The request timed out. Please try again.",
}

GENERIC_TEMPLATE_MESSAGE = "Failed to save template. Please check your network and try again."


def template_error_message(error: Exception) -> str:
    code = getattr(error, "code", None)
    msg = BACKEND_MESSAGES.get(code, GENERIC_TEMPLATE_MESSAGE)
    return f"{msg} (error: {code})" if code else msg

class WorkflowError(Exception):
    """Base class for review workflow failures.

    ``code`` is the stable identifier returned to API clients, ``http_status``
    is the response status used by the error handlers, and ``retryable`` tells
    the caller whether reloading and resubmitting can succeed.
    """

    code = "workflow_error"
    http_status = 400
    retryable = False

    def __init__(self, message=None, **context):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self.args[0])
        self.context = context

    def to_dict(self):
        body = {"error": self.code, "message": self.message, "retryable": self.retryable}
        if self.context:
            body["context"] = self.context
        return body


class InvalidRoleForState(WorkflowError):
    """This role cannot perform that action at the application's current stage."""

    code = "invalid_role_for_state"
    http_status = 403


class MissingRequiredField(WorkflowError):
    """A field required for this transition was not supplied."""

    code = "missing_required_field"
    http_status = 422

    def __init__(self, field, message=None):
        super().__init__(message or f"'{field}' is required for this action.", field=field)
        self.field = field


class NotFound(WorkflowError):
    """The requested record does not exist."""

    code = "not_found"
    http_status = 404


class ConcurrentModification(WorkflowError):
    """The application changed since it was loaded. Reload and try again."""

    code = "concurrent_modification"
    http_status = 409
    retryable = True


class DuplicatePhone(WorkflowError):
    """Another approved applicant already holds this phone number."""

    code = "duplicate_phone"
    http_status = 409


class DispatchError(WorkflowError):
    """The notification gateway did not accept the message."""

    code = "dispatch_error"
    http_status = 502

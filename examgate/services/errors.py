"""
Domain Errors
Every rejection carries an HTTP status, a stable code and the client's next step
"""


class ExamgateError(Exception):
    """Base class for errors surfaced to API callers"""
    status_code = 400
    code = 'invalid_request'
    default_message = 'Invalid request'
    next_step = None

    def __init__(self, message=None, next_step=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if next_step is not None:
            self.next_step = next_step

    def to_dict(self):
        return {
            'message': self.message,
            'error': self.code,
            'nextStep': self.next_step,
        }


# ================= VALIDATION =================

class ValidationError(ExamgateError):
    status_code = 400
    code = 'invalid_request'


class InvalidCode(ValidationError):
    status_code = 404
    code = 'invalid_code'
    default_message = 'Exam code is invalid'


class NotAvailable(ValidationError):
    status_code = 404
    code = 'not_available'
    default_message = 'Exam is not available for taking'


class NotYetOpen(ValidationError):
    code = 'not_yet_open'
    default_message = 'Exam has not started yet'
    next_step = 'retry_later'


class AlreadyEnded(ValidationError):
    code = 'already_ended'
    default_message = 'Exam has already ended'


class NotFound(ExamgateError):
    status_code = 404
    code = 'not_found'
    default_message = 'Not found'


class PermissionDenied(ExamgateError):
    status_code = 403
    code = 'forbidden'
    default_message = 'You are not allowed to do that'


# ================= STATE CONFLICTS =================

class StateConflict(ExamgateError):
    status_code = 409
    code = 'invalid_state'
    default_message = 'Operation not allowed in the current state'


class AlreadyCompleted(StateConflict):
    code = 'already_completed'
    default_message = 'You have already completed this exam'
    next_step = 'results'


class AttemptTimedOut(StateConflict):
    code = 'attempt_timed_out'
    default_message = 'Time limit for this attempt has passed'
    next_step = 'submit'


class AttemptNotInProgress(StateConflict):
    code = 'invalid_state'
    default_message = 'No active attempt found for this exam'
    next_step = 'resume'


# ================= EXECUTION =================

class ExecutionAdapterError(Exception):
    """Transport-level failure talking to the code execution service"""

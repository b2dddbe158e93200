"""Error taxonomy for the test-session engine.

Each error carries the HTTP status the routes translate it to.
"""


class AssessmentError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequest(AssessmentError):
    status_code = 400


class NotFound(AssessmentError):
    status_code = 404


class InvalidState(AssessmentError):
    status_code = 400


class NoQuestionsAvailable(AssessmentError):
    status_code = 400


class StrategyNotImplemented(AssessmentError):
    status_code = 501


class SessionConflict(AssessmentError):
    status_code = 409

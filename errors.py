"""Error kinds raised by the question model, scoring engine and lifecycle controller."""


class QuestionnaireError(Exception):
    kind = "QuestionnaireError"

    def __init__(self, message: str, question_id: str = None):
        super().__init__(message)
        self.message = message
        self.question_id = question_id

    def to_dict(self):
        detail = {"kind": self.kind, "message": self.message}
        if self.question_id is not None:
            detail["question_id"] = self.question_id
        return detail


class LifecycleError(QuestionnaireError):
    kind = "LifecycleError"


class InvalidTransition(LifecycleError):
    kind = "InvalidTransition"


class ResponseAlreadyScored(LifecycleError):
    kind = "ResponseAlreadyScored"


class ValidationError(QuestionnaireError):
    kind = "ValidationError"


class InvalidAnswerValue(ValidationError):
    kind = "InvalidAnswerValue"


class MissingRequiredAnswer(ValidationError):
    kind = "MissingRequiredAnswer"


class QuestionNotInQuestionnaire(ValidationError):
    kind = "QuestionNotInQuestionnaire"


class QuestionnaireConfigError(ValidationError):
    kind = "QuestionnaireConfigError"


class ScoringError(QuestionnaireError):
    kind = "ScoringError"


class UnsupportedScoringMethod(ScoringError):
    kind = "UnsupportedScoringMethod"


class ScoreBelowAllThresholds(ScoringError):
    kind = "ScoreBelowAllThresholds"


class DuplicateThreshold(ScoringError):
    kind = "DuplicateThreshold"

"""Exception types raised by the study core."""


class StudyError(Exception):
    """Base class for all mcq_study errors."""


class MalformedInputError(StudyError):
    """A question file's top-level shape is neither a list nor {questions: [...]}."""

    def __init__(self, filename: str, detail: str = "expected array or {questions: array}"):
        self.filename = filename
        self.detail = detail
        super().__init__(f"Invalid data format in {filename}: {detail}")


class NoQuestionsAvailable(StudyError):
    """A selection or quiz scope resolved to zero questions."""

    def __init__(self, scope: str = "all"):
        self.scope = scope
        super().__init__(f"No questions available for {scope!r}")


class PersistenceFailure(StudyError):
    """A read or write against the local store failed."""


class InvalidTransition(StudyError):
    """A quiz session operation was requested from a state that does not allow it."""

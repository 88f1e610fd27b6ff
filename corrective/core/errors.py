class CorrectiveError(Exception):
    """Base error of the engine. ``message`` is safe to show to the end user."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationFailed(CorrectiveError, ValueError):
    pass


class NotFound(CorrectiveError):
    pass


class ConflictState(CorrectiveError):
    pass


class AlreadyClosed(ConflictState):
    pass


def require_positive(value, field: str) -> None:
    if value is None or isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationFailed(f"{field} debe ser un entero positivo")

"""
Errors raised by the cycle tracking core.

Every error carries a ``status_code`` and a human readable ``detail`` so the API
layer can turn it into a response without inspecting the error kind.
"""


class CycleTrackError(Exception):
    status_code: int = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, detail={self.detail!r})"


class ValidationError(CycleTrackError):
    """Malformed or out-of-range input. Raised before anything is written."""

    status_code = 400


class InvalidOvulationDate(ValidationError):
    def __init__(
        self,
        detail: str = "Invalid ovulation date: Can't occur before or during menstruation",
    ) -> None:
        super().__init__(detail)


class NotFoundError(CycleTrackError):
    status_code = 404


class ConflictError(CycleTrackError):
    """
    Duplicate month cycle or duplicate active pregnancy. The same error is raised
    whether the duplicate is caught by a lookup or by the database constraint.
    """

    status_code = 409


class InternalError(CycleTrackError):
    status_code = 500

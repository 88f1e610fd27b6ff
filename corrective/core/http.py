import logging

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse

from corrective.core.errors import ConflictState, CorrectiveError, NotFound, ValidationFailed

STATUS_BY_ERROR = (
    (ValidationFailed, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (ConflictState, status.HTTP_409_CONFLICT),
)


def to_http(exc: CorrectiveError) -> HTTPException:
    for error_cls, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return HTTPException(status_code=status_code, detail=exc.message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)


def internal_error(logger: logging.Logger) -> JSONResponse:
    logger.exception("unexpected error")
    return JSONResponse(status_code=500, content={"message": "Ocurrió un error, intente nuevamente más tarde"})

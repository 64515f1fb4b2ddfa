"""Map authentication failures onto HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ...domain.errors import AuthError, AuthErrorKind

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    AuthErrorKind.EMAIL_ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    AuthErrorKind.BAD_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    AuthErrorKind.ACCOUNT_NOT_VERIFIED: status.HTTP_401_UNAUTHORIZED,
    AuthErrorKind.INVALID_TOKEN: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.TOKEN_EXPIRED: status.HTTP_400_BAD_REQUEST,
}


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    logger.debug("%s %s -> %s", request.method, request.url.path, exc.kind.value)
    return JSONResponse(
        status_code=STATUS_BY_KIND[exc.kind],
        content={"message": exc.message, "error": exc.kind.value},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthError, auth_error_handler)  # type: ignore[arg-type]

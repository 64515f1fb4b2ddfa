from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ...core.clock import Clock
from ...core.dependencies import get_clock, get_token_signer
from ...domain.models import AccessClaims
from ...services.token_signer import TokenSigner

_bearer_scheme = HTTPBearer(auto_error=False)
_UNAUTHORIZED_DETAIL = "Invalid or expired token"


def require_identity(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    token_signer: TokenSigner = Depends(get_token_signer),
    clock: Clock = Depends(get_clock),
) -> AccessClaims:
    """Resolve the bearer access token into validated claims."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=_UNAUTHORIZED_DETAIL,
        )
    claims = token_signer.validate(credentials.credentials, clock.now())
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=_UNAUTHORIZED_DETAIL,
        )
    return claims

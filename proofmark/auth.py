from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError

from proofmark.config import Settings, get_settings

ALGORITHM = "HS256"

# =========================
# OAuth2 (token only required on operator routes)
# =========================

OAUTH2_SCHEME = OAuth2PasswordBearer(
    tokenUrl="/token",
    auto_error=False,
)

# =========================
# Current operator
# =========================

def get_current_operator(
    token: str | None = Depends(OAUTH2_SCHEME),
    settings: Settings = Depends(get_settings),
):
    if not settings.jwt_secret_key or not settings.jwt_issuer:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Operator authentication is not configured",
        )

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[ALGORITHM],
            issuer=settings.jwt_issuer,
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    operator_id = payload.get("sub")
    if not operator_id:
        raise HTTPException(status_code=401, detail="Invalid token")

    return {
        "operator_id": operator_id,
        "role": payload.get("role", "operator"),
    }

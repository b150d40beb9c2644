# Freedom Family Hub - Quick Unlock API
#
# Endpoints used by the front-end "Quick Unlock" controls:
# - status (available on this device? configured?)
# - enable with the current session's refresh token
# - unlock (returns the refresh token to restore the session)
# - disable
#
# Vault errors are returned as {"detail": {"error", "message", "retryable"}}.

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from ..vault import BiometricVault, VaultError, VaultErrorKind
from .security import verify_session_token

router = APIRouter(
    prefix="/api/quick-unlock",
    tags=["quick-unlock"],
    dependencies=[Depends(verify_session_token)],
)

ERROR_STATUS = {
    VaultErrorKind.UNAVAILABLE: status.HTTP_501_NOT_IMPLEMENTED,
    VaultErrorKind.NOT_CONFIGURED: status.HTTP_404_NOT_FOUND,
    VaultErrorKind.USER_CANCELLED: status.HTTP_409_CONFLICT,
    VaultErrorKind.AUTHENTICATION_FAILED: status.HTTP_401_UNAUTHORIZED,
    VaultErrorKind.DECRYPTION_FAILED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    VaultErrorKind.STORAGE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


# Request/Response Models
class EnableRequest(BaseModel):
    secret: str = Field(..., min_length=1)


class StatusResponse(BaseModel):
    available: bool
    configured: bool


class UnlockResponse(BaseModel):
    secret: str


def get_vault(request: Request) -> BiometricVault:
    """The vault the app was created with."""
    return request.app.state.vault


def vault_http_error(error: VaultError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS.get(error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.to_dict(),
    )


# Endpoints

@router.get("/status", response_model=StatusResponse)
async def get_status(vault: BiometricVault = Depends(get_vault)):
    """Whether Quick Unlock can be used here and whether it is set up."""
    try:
        configured = vault.has_record()
    except VaultError as e:
        raise vault_http_error(e)
    return StatusResponse(available=vault.is_available(), configured=configured)


@router.post("/enable")
async def enable(request: EnableRequest, vault: BiometricVault = Depends(get_vault)):
    """
    Encrypt the refresh token behind a new platform credential.

    Two biometric prompts are shown on the device.
    """
    try:
        await vault.enable(request.secret)
    except VaultError as e:
        raise vault_http_error(e)
    return {"success": True}


@router.post("/unlock", response_model=UnlockResponse)
async def unlock(vault: BiometricVault = Depends(get_vault)):
    """Prompt once and return the stored refresh token."""
    try:
        secret = await vault.unlock()
    except VaultError as e:
        raise vault_http_error(e)
    return UnlockResponse(secret=secret)


@router.post("/disable")
async def disable(vault: BiometricVault = Depends(get_vault)):
    """Forget the stored record. Safe to call when nothing is stored."""
    try:
        await vault.disable()
    except VaultError as e:
        raise vault_http_error(e)
    return {"success": True}

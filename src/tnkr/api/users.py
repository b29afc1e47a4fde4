"""Profile API — the caller's own account.

Learn: GET /users/profile is read on every screen load by the clients,
so it goes through the cache (profile:{userId}, one hour). Both
mutations invalidate that key after committing.
"""

from fastapi import APIRouter, Depends, File, UploadFile

from tnkr.api.auth import get_account_service
from tnkr.auth.dependencies import CurrentIdentity
from tnkr.auth.policy import require
from tnkr.cache import ONE_HOUR_TTL, cache_key, read_through
from tnkr.schemas.user import ProfileUpdate, UserRead
from tnkr.services.account_service import PROFILE_PAGE, AccountService
from tnkr.storage.s3 import from_upload

router = APIRouter(prefix="/users")


@router.get("/profile")
async def get_profile(
    identity: CurrentIdentity = Depends(require("profile:read")),
    accounts: AccountService = Depends(get_account_service),
):
    """Cached profile read."""

    async def load():
        user = await accounts.get_user(identity.uuid)
        return UserRead.model_validate(user).model_dump(by_alias=True)

    return await read_through(cache_key(identity.uuid, PROFILE_PAGE), load, ONE_HOUR_TTL)


@router.patch("/profile", response_model=UserRead)
async def update_profile(
    body: ProfileUpdate,
    identity: CurrentIdentity = Depends(require("profile:read")),
    accounts: AccountService = Depends(get_account_service),
):
    return await accounts.update_profile(identity.uuid, **body.model_dump(exclude_unset=True))


@router.put("/profile/picture", response_model=UserRead)
async def update_profile_picture(
    picture: UploadFile = File(...),
    identity: CurrentIdentity = Depends(require("profile:read")),
    accounts: AccountService = Depends(get_account_service),
):
    stored = await from_upload(picture)
    return await accounts.update_profile_picture(identity.uuid, stored)

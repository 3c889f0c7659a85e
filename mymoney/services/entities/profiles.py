"""Profile rows <-> Profile models."""

from typing import Optional

from mymoney.models.ledger import Profile
from mymoney.services.storage import NotFoundError, RemoteStoreInterface, Row


TABLE = "profiles"


def row_to_profile(row: Row) -> Profile:
    return Profile(
        id=row["id"],
        name=row.get("name") or "New User",
        email=row["email"],
        theme_setting=row.get("theme_setting") or None,
    )


class ProfileService:
    """Read-or-create access to the signed-in user's profile."""
    
    def __init__(self, store: RemoteStoreInterface):
        self._store = store
    
    async def find_profile(self, user_id: str) -> Optional[Profile]:
        rows = await self._store.select(TABLE, {"id": user_id}, limit=1)
        return row_to_profile(rows[0]) if rows else None
    
    async def get_profile(
        self,
        user_id: str,
        default_name: Optional[str] = None,
        default_email: Optional[str] = None,
    ) -> Profile:
        """
        Return the profile, creating it from the defaults on first use.
        
        Raises:
            NotFoundError: If there is no profile and no default email
        """
        profile = await self.find_profile(user_id)
        if profile is not None:
            return profile
        
        if not default_email:
            raise NotFoundError("Cannot create profile without email")
        
        row = await self._store.insert(TABLE, {
            "id": user_id,
            "name": default_name or "New User",
            "email": default_email,
        })
        return row_to_profile(row)
    
    async def update_profile(
        self,
        user_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        theme_setting: Optional[str] = None,
    ) -> Profile:
        patch = {
            key: value
            for key, value in (
                ("name", name),
                ("email", email),
                ("theme_setting", theme_setting),
            )
            if value is not None
        }
        if not patch:
            profile = await self.find_profile(user_id)
            if profile is None:
                raise NotFoundError(f"Profile not found: {user_id}")
            return profile
        row = await self._store.update(TABLE, user_id, patch)
        return row_to_profile(row)

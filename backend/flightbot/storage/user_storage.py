"""
User Storage - traveller accounts persisted as JSON documents.

Layout:
    users/<user_id>.json
    users/email_index.json   (lower-cased email -> user_id)
"""

import json
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .interface import StorageInterface
from .local_storage import LocalStorage

logger = logging.getLogger(__name__)


class UserStorage:
    """Manages persistent storage of user accounts."""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.users_dir = "users"
        self._email_index_path = f"{self.users_dir}/email_index.json"

    def _user_path(self, user_id: str) -> str:
        return f"{self.users_dir}/{user_id}.json"

    async def _load_email_index(self) -> Dict[str, str]:
        content = await self.storage.load(self._email_index_path)
        if content is None:
            return {}
        try:
            return json.loads(content.decode('utf-8'))
        except ValueError:
            logger.error("Email index is corrupt, treating as empty")
            return {}

    async def _save_email_index(self, index: Dict[str, str]) -> bool:
        return await self.storage.save(self._email_index_path, json.dumps(index, indent=2))

    async def _write_user(self, user: Dict) -> bool:
        content = json.dumps(user, indent=2, ensure_ascii=False, default=str)
        return await self.storage.save(self._user_path(user["user_id"]), content)

    async def get_user(self, user_id: str) -> Optional[Dict]:
        """
        Get user by user_id.

        Returns:
            Optional[Dict]: User document (timestamps as ISO strings) or None
        """
        content = await self.storage.load(self._user_path(user_id))
        if content is None:
            return None
        try:
            return json.loads(content.decode('utf-8'))
        except ValueError as e:
            logger.error(f"Error decoding user {user_id}: {e}")
            return None

    async def get_user_by_email(self, email: str) -> Optional[Dict]:
        index = await self._load_email_index()
        user_id = index.get(email.lower())
        if user_id is None:
            return None
        return await self.get_user(user_id)

    async def email_exists(self, email: str) -> bool:
        index = await self._load_email_index()
        return email.lower() in index

    async def create_user(
        self,
        user_id: str,
        name: str,
        email: str,
        hashed_password: str,
        phone: Optional[str] = None
    ) -> Dict:
        """
        Create a new user and register its email in the index.

        Args:
            user_id: User ID (UUID)
            name: Display name
            email: Login email, stored lower-cased
            hashed_password: bcrypt hash
            phone: Optional phone number

        Returns:
            Dict: Created user document
        """
        now = datetime.now(timezone.utc).isoformat()
        user = {
            "user_id": user_id,
            "name": name,
            "email": email.lower(),
            "hashed_password": hashed_password,
            "phone": phone,
            "date_of_birth": None,
            "preferences": {
                "currency": "USD",
                "seat_preference": "no-preference",
                "meal_preference": "no-preference",
                "frequent_destinations": [],
                "home_airport": None,
            },
            "is_active": True,
            "last_login": None,
            "created_at": now,
            "updated_at": now,
        }

        await self._write_user(user)

        index = await self._load_email_index()
        index[user["email"]] = user_id
        await self._save_email_index(index)

        logger.info(f"User created: {user_id}")
        return user

    async def update_user(self, user_id: str, updates: Dict) -> Optional[Dict]:
        """
        Merge ``updates`` into the stored user.

        Returns:
            Optional[Dict]: Updated user or None if the user does not exist
        """
        user = await self.get_user(user_id)
        if user is None:
            return None

        user.update(updates)
        user["updated_at"] = datetime.now(timezone.utc).isoformat()
        await self._write_user(user)
        return user

    async def delete_user(self, user_id: str) -> bool:
        user = await self.get_user(user_id)
        if user is None:
            return False

        index = await self._load_email_index()
        if index.pop(user.get("email", ""), None) is not None:
            await self._save_email_index(index)

        return await self.storage.delete(self._user_path(user_id))

    async def list_users(self) -> List[Dict]:
        users = []
        for path in await self.storage.list(self.users_dir, pattern="*.json"):
            if path.endswith("email_index.json"):
                continue
            content = await self.storage.load(path)
            if content:
                try:
                    users.append(json.loads(content.decode('utf-8')))
                except ValueError:
                    logger.warning(f"Skipping unreadable user document {path}")
        return users


# Global user storage instance
_user_storage: Optional[UserStorage] = None


def init_user_storage(storage: Optional[StorageInterface] = None):
    """
    Initialize the global user storage instance.

    Args:
        storage: Optional StorageInterface implementation. If None, creates LocalStorage.
    """
    global _user_storage
    _user_storage = UserStorage(storage or LocalStorage())


def get_user_storage() -> UserStorage:
    """
    Get the global user storage instance.

    Raises:
        RuntimeError: If user storage has not been initialized
    """
    if _user_storage is None:
        raise RuntimeError("User storage not initialized. Call init_user_storage() first.")
    return _user_storage

from __future__ import annotations

from typing import Any

import bcrypt

# Account provisioning lives elsewhere; these demo members back the session
# login so the API can be exercised end to end.
DEMO_MEMBERS: dict[str, str] = {
    "alice": "Alice",
    "bob": "Bob",
    "carol": "Carol",
    "dave": "Dave",
    "erin": "Erin",
}


class UserDirectory:
    def __init__(self) -> None:
        self._users: dict[str, dict[str, Any]] = {}

    @staticmethod
    def _hash_password(plain: str) -> str:
        return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()

    @staticmethod
    def _verify_password(plain: str, hashed: str) -> bool:
        return bcrypt.checkpw(plain.encode(), hashed.encode())

    def add_user(self, username: str, password: str, display_name: str, role: str = "member") -> None:
        self._users[username] = {
            "password_hash": self._hash_password(password),
            "display_name": display_name,
            "role": role,
        }

    def authenticate(self, username: str, password: str) -> dict[str, Any] | None:
        """Verify credentials. Returns ``{member_id, display_name, role}`` or ``None``."""
        record = self._users.get(username)
        if record and self._verify_password(password, record["password_hash"]):
            return {
                "member_id": username,
                "display_name": record["display_name"],
                "role": record["role"],
            }
        return None


def seed_demo_users() -> UserDirectory:
    """Demo members log in with ``<name>123``; the admin with ``admin123``."""
    users = UserDirectory()
    for member_id, display_name in DEMO_MEMBERS.items():
        users.add_user(member_id, f"{member_id}123", display_name)
    users.add_user("admin", "admin123", "Admin", role="admin")
    return users

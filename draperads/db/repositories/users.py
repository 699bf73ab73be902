from typing import Optional

from draperads.db.models import User
from draperads.db.repositories.base import Repository


class UsersRepository(Repository):
    def get(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def upsert(
        self,
        *,
        user_id: int,
        username: str,
        email: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        profile_image_url: Optional[str] = None,
    ) -> User:
        """Insert the user on first login, refresh the profile fields on later logins."""
        user = self.get(user_id)
        if user is None:
            user = User(id=user_id, username=username)
        user.username = username
        user.email = email
        user.first_name = first_name
        user.last_name = last_name
        user.profile_image_url = profile_image_url
        return self.save(user)

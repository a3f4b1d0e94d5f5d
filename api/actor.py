"""Actor context: who is performing a request, as seen by the services."""

from uuid import UUID

from models.user import User, UserRole


class ActorContext:
    """Authenticated caller of a mutating or reading operation."""

    def __init__(self, user_id: UUID, role: str):
        """
        Initialize actor context.

        Args:
            user_id: Authenticated user ID
            role: User role (admin, client or technician)
        """
        self.user_id = user_id
        self.role = role

    @classmethod
    def from_user(cls, user: User) -> "ActorContext":
        """
        Create ActorContext from a loaded user.

        Args:
            user: Authenticated user

        Returns:
            ActorContext carrying the user's ID and role
        """
        return cls(user_id=user.id, role=user.role)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def is_technician(self) -> bool:
        return self.role == UserRole.TECHNICIAN.value

    @property
    def is_client(self) -> bool:
        return self.role == UserRole.CLIENT.value

    def __repr__(self) -> str:
        return f"ActorContext(user_id={self.user_id!r}, role={self.role!r})"

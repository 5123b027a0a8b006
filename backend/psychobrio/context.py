from __future__ import annotations
from pydantic import BaseModel

from .models import UserRole


ADMIN_ROLES = (UserRole.ADMIN_PSY, UserRole.SUPERADMIN_TECH)


class RequestContext(BaseModel):
	"""Identity of the caller, passed explicitly into every core operation."""

	user_id: str
	username: str
	role: UserRole

	@property
	def is_admin(self) -> bool:
		return self.role in ADMIN_ROLES

"""Per-profile read/write decisions for the three user roles.

Every decision is recomputed from storage on each call: a parent link can be
verified or revoked between two requests.
"""
from __future__ import annotations

from typing import Optional

from studesq.auth.session import AuthSession
from studesq.models import UserRole
from studesq.repository import DataAccess

WRITE_ROLES = frozenset({UserRole.STUDENT, UserRole.ADMIN})


class AccessControl:
    def __init__(self, data_access: DataAccess):
        self.data_access = data_access

    def owns_student(self, session: AuthSession, student_id: str) -> bool:
        profile = self.data_access.find_student_profile_by_user_id(session.user_id)
        return profile is not None and profile.id == student_id

    def can_access_student(self, session: Optional[AuthSession], student_id: str) -> bool:
        if session is None:
            return False
        if session.role == UserRole.ADMIN:
            return True
        if session.role == UserRole.STUDENT:
            return self.owns_student(session, student_id)
        if session.role == UserRole.PARENT:
            link = self.data_access.find_parent_link(session.user_id, student_id)
            return link is not None and bool(link.verified)
        return False

    def can_write_role(self, session: Optional[AuthSession]) -> bool:
        return session is not None and session.role in WRITE_ROLES

    def can_write_student(self, session: Optional[AuthSession], student_id: str) -> bool:
        # Role gate first: a PARENT is rejected without touching storage.
        if not self.can_write_role(session):
            return False
        if session.role == UserRole.ADMIN:
            return True
        return self.owns_student(session, student_id)

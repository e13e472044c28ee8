"""Data-access layer used by the session and access-control code.

Every method is a lookup or a single insert; storage failures surface
as ``sqlalchemy.exc.SQLAlchemyError`` and are handled by the caller.
"""

from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studesq.models import ParentLink, StudentProfile, User, UserRole


class DataAccess(Protocol):
    def find_user_by_email(self, email: str) -> User | None: ...

    def find_user_by_id(self, user_id: str) -> User | None: ...

    def create_user(
        self,
        *,
        email: str,
        name: str,
        role: UserRole,
        user_id: str | None = None,
        google_id: str | None = None,
    ) -> User: ...

    def find_student_profile_by_user_id(self, user_id: str) -> StudentProfile | None: ...

    def find_student_profile_by_id(self, student_id: str) -> StudentProfile | None: ...

    def create_student_profile(self, user: User, *, early_founder: bool = False) -> StudentProfile: ...

    def find_parent_link(self, parent_user_id: str, student_id: str) -> ParentLink | None: ...

    def list_verified_students(self, parent_user_id: str) -> list[StudentProfile]: ...


class SqlAlchemyDataAccess:
    def __init__(self, db: Session):
        self.db = db

    def find_user_by_email(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def find_user_by_id(self, user_id: str) -> User | None:
        return self.db.query(User).filter(User.id == user_id).first()

    def create_user(
        self,
        *,
        email: str,
        name: str,
        role: UserRole,
        user_id: str | None = None,
        google_id: str | None = None,
    ) -> User:
        user = User(
            email=email.strip().lower(),
            name=name,
            role=role,
            google_id=google_id,
        )
        if user_id:
            user.id = user_id
        try:
            self.db.add(user)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(user)
        return user

    def find_student_profile_by_user_id(self, user_id: str) -> StudentProfile | None:
        return self.db.query(StudentProfile).filter(StudentProfile.user_id == user_id).first()

    def find_student_profile_by_id(self, student_id: str) -> StudentProfile | None:
        return self.db.query(StudentProfile).filter(StudentProfile.id == student_id).first()

    def create_student_profile(self, user: User, *, early_founder: bool = False) -> StudentProfile:
        profile = StudentProfile(
            user_id=user.id,
            display_name=user.name,
            early_founder=early_founder,
        )
        try:
            self.db.add(profile)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(profile)
        return profile

    def find_parent_link(self, parent_user_id: str, student_id: str) -> ParentLink | None:
        return self.db.query(ParentLink).filter(
            ParentLink.parent_user_id == parent_user_id,
            ParentLink.student_id == student_id,
        ).first()

    def list_verified_students(self, parent_user_id: str) -> list[StudentProfile]:
        return self.db.query(StudentProfile).join(
            ParentLink, ParentLink.student_id == StudentProfile.id,
        ).filter(
            ParentLink.parent_user_id == parent_user_id,
            ParentLink.verified.is_(True),
        ).order_by(StudentProfile.display_name.asc()).all()

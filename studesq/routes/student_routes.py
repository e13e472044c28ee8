import logging
import os
from datetime import date, datetime

from fastapi import APIRouter, Body, Depends, File, Form, UploadFile, status
from fastapi.responses import FileResponse
from pydantic import BaseModel, ValidationError, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studesq.auth.access_control import AccessControl
from studesq.auth.dependencies import get_access_control, get_data_access, require_session
from studesq.auth.session import AuthSession
from studesq.core.constants import (
    ACHIEVEMENT_DESCRIPTION_MAX_LENGTH,
    ACHIEVEMENT_TITLE_MAX_LENGTH,
    BIO_MAX_LENGTH,
    CONTENT_TYPES_BY_EXTENSION,
    GRADE_MAX_LENGTH,
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    SCHOOL_MAX_LENGTH,
)
from studesq.core.responses import (
    VALIDATION_ERROR,
    ApiError,
    database_unavailable,
    forbidden,
    not_found,
    success_response,
)
from studesq.database import get_db
from studesq.models import Achievement, AchievementType, StudentProfile, UserRole
from studesq.repository import DataAccess
from studesq.uploads import UploadError, discard_upload, resolve_upload_path, save_upload

logger = logging.getLogger(__name__)

router = APIRouter(tags=['students'])


def _optional_text(value: str | None, max_length: int, label: str) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    if len(normalized) > max_length:
        raise ValueError(f'{label} must be {max_length} characters or fewer.')
    return normalized


class UpdateProfileRequest(BaseModel):
    display_name: str
    bio: str | None = None
    school: str | None = None
    grade: str | None = None
    dob: date | None = None

    @field_validator('display_name')
    @classmethod
    def validate_display_name(cls, value: str) -> str:
        normalized = value.strip()
        if not NAME_MIN_LENGTH <= len(normalized) <= NAME_MAX_LENGTH:
            raise ValueError(f'Display name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters.')
        return normalized

    @field_validator('bio')
    @classmethod
    def validate_bio(cls, value: str | None) -> str | None:
        return _optional_text(value, BIO_MAX_LENGTH, 'Bio')

    @field_validator('school')
    @classmethod
    def validate_school(cls, value: str | None) -> str | None:
        return _optional_text(value, SCHOOL_MAX_LENGTH, 'School')

    @field_validator('grade')
    @classmethod
    def validate_grade(cls, value: str | None) -> str | None:
        return _optional_text(value, GRADE_MAX_LENGTH, 'Grade')


class CreateAchievementRequest(BaseModel):
    title: str
    description: str
    type: AchievementType
    date: datetime

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Title is required')
        if len(normalized) > ACHIEVEMENT_TITLE_MAX_LENGTH:
            raise ValueError(f'Title must be {ACHIEVEMENT_TITLE_MAX_LENGTH} characters or fewer.')
        return normalized

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Description is required')
        if len(normalized) > ACHIEVEMENT_DESCRIPTION_MAX_LENGTH:
            raise ValueError(f'Description must be {ACHIEVEMENT_DESCRIPTION_MAX_LENGTH} characters or fewer.')
        return normalized


class UserSummaryResponse(BaseModel):
    id: str
    email: str
    name: str
    role: UserRole

    class Config:
        from_attributes = True


class ParentSummaryResponse(BaseModel):
    id: str
    name: str
    email: str

    class Config:
        from_attributes = True


class AchievementResponse(BaseModel):
    id: str
    student_id: str
    title: str
    description: str
    type: AchievementType
    date: datetime
    certificate_path: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class StudentProfileResponse(BaseModel):
    id: str
    user_id: str
    display_name: str
    bio: str | None = None
    school: str | None = None
    grade: str | None = None
    dob: date | None = None
    early_founder: bool
    created_at: datetime | None = None
    user: UserSummaryResponse
    achievements: list[AchievementResponse] = []
    parents: list[ParentSummaryResponse] = []

    class Config:
        from_attributes = True


def build_profile_response(profile: StudentProfile, achievement_limit: int | None = None) -> StudentProfileResponse:
    achievements = sorted(profile.achievements, key=lambda achievement: achievement.date, reverse=True)
    if achievement_limit is not None:
        achievements = achievements[:achievement_limit]
    return StudentProfileResponse(
        id=profile.id,
        user_id=profile.user_id,
        display_name=profile.display_name,
        bio=profile.bio,
        school=profile.school,
        grade=profile.grade,
        dob=profile.dob,
        early_founder=profile.early_founder,
        created_at=profile.created_at,
        user=UserSummaryResponse.model_validate(profile.user),
        achievements=[AchievementResponse.model_validate(achievement) for achievement in achievements],
        parents=[ParentSummaryResponse.model_validate(link.parent) for link in profile.parent_links if link.verified],
    )


def _invalid_data(message: str, exc: ValidationError) -> ApiError:
    details = [{'loc': list(error['loc']), 'msg': error['msg']} for error in exc.errors()]
    return ApiError(status.HTTP_400_BAD_REQUEST, message, VALIDATION_ERROR, details)


def authorize_student_write(
    access: AccessControl,
    session: AuthSession,
    student_id: str,
    data_access: DataAccess,
    role_message: str,
    owner_message: str,
) -> StudentProfile:
    if not access.can_write_role(session):
        raise forbidden(role_message)

    profile = data_access.find_student_profile_by_id(student_id)
    if profile is None:
        raise not_found('Student profile not found')

    if not access.can_write_student(session, student_id):
        raise forbidden(owner_message)
    return profile


@router.get('/students/me')
def get_own_profile(
    session: AuthSession = Depends(require_session),
    data_access: DataAccess = Depends(get_data_access),
):
    """The signed-in student's profile, or ``None`` before one is provisioned."""
    if session.role != UserRole.STUDENT:
        raise forbidden('Only students have a portfolio profile')

    try:
        profile = data_access.find_student_profile_by_user_id(session.user_id)
        if profile is None:
            return success_response(None)
        return success_response(build_profile_response(profile))
    except SQLAlchemyError as exc:
        logger.exception('Failed to fetch profile for user %s', session.user_id)
        raise database_unavailable() from exc


@router.get('/parents/me/students')
def list_linked_students(
    session: AuthSession = Depends(require_session),
    data_access: DataAccess = Depends(get_data_access),
):
    """Students the signed-in parent has a verified link to, each with their latest achievements."""
    if session.role != UserRole.PARENT:
        raise forbidden('Only parents have linked students')

    try:
        profiles = data_access.list_verified_students(session.user_id)
        return success_response([build_profile_response(profile, achievement_limit=5) for profile in profiles])
    except SQLAlchemyError as exc:
        logger.exception('Failed to fetch linked students for parent %s', session.user_id)
        raise database_unavailable() from exc


@router.get('/students/{student_id}')
def get_student_profile(
    student_id: str,
    session: AuthSession = Depends(require_session),
    access: AccessControl = Depends(get_access_control),
    data_access: DataAccess = Depends(get_data_access),
):
    try:
        if not access.can_access_student(session, student_id):
            raise forbidden('Access denied to this student profile')

        profile = data_access.find_student_profile_by_id(student_id)
        if profile is None:
            raise not_found('Student profile not found')

        return success_response(build_profile_response(profile))
    except SQLAlchemyError as exc:
        logger.exception('Failed to fetch student profile %s', student_id)
        raise database_unavailable() from exc


@router.put('/students/{student_id}')
def update_student_profile(
    student_id: str,
    payload: dict = Body(...),
    session: AuthSession = Depends(require_session),
    access: AccessControl = Depends(get_access_control),
    data_access: DataAccess = Depends(get_data_access),
    db: Session = Depends(get_db),
):
    try:
        profile = authorize_student_write(
            access,
            session,
            student_id,
            data_access,
            role_message='Only students can update their profile',
            owner_message='You can only update your own profile',
        )

        try:
            data = UpdateProfileRequest.model_validate(payload)
        except ValidationError as exc:
            raise _invalid_data('Invalid profile data', exc) from exc

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(profile, field, value)
        db.commit()
        db.refresh(profile)

        return success_response(build_profile_response(profile, achievement_limit=5), 'Profile updated successfully')
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update student profile %s', student_id)
        raise database_unavailable() from exc


@router.get('/students/{student_id}/achievements')
def list_achievements(
    student_id: str,
    session: AuthSession = Depends(require_session),
    access: AccessControl = Depends(get_access_control),
    db: Session = Depends(get_db),
):
    try:
        if not access.can_access_student(session, student_id):
            raise forbidden('Access denied to this student profile')

        achievements = db.query(Achievement).filter(
            Achievement.student_id == student_id,
        ).order_by(Achievement.date.desc()).all()

        return success_response([AchievementResponse.model_validate(achievement) for achievement in achievements])
    except SQLAlchemyError as exc:
        logger.exception('Failed to fetch achievements for %s', student_id)
        raise database_unavailable() from exc


@router.post('/students/{student_id}/achievements', status_code=status.HTTP_201_CREATED)
def create_achievement(
    student_id: str,
    title: str | None = Form(None),
    description: str | None = Form(None),
    achievement_type: str | None = Form(None, alias='type'),
    achievement_date: str | None = Form(None, alias='date'),
    certificate: UploadFile | None = File(None),
    session: AuthSession = Depends(require_session),
    access: AccessControl = Depends(get_access_control),
    data_access: DataAccess = Depends(get_data_access),
    db: Session = Depends(get_db),
):
    uploaded = None
    try:
        authorize_student_write(
            access,
            session,
            student_id,
            data_access,
            role_message='Only students can add achievements',
            owner_message='You can only add achievements to your own profile',
        )

        try:
            data = CreateAchievementRequest.model_validate(
                {'title': title, 'description': description, 'type': achievement_type, 'date': achievement_date}
            )
        except ValidationError as exc:
            raise _invalid_data('Invalid achievement data', exc) from exc

        if certificate is not None and certificate.filename:
            try:
                uploaded = save_upload(
                    certificate.file.read(),
                    certificate.filename,
                    certificate.content_type or '',
                    student_id,
                )
            except UploadError as exc:
                raise ApiError(
                    status.HTTP_400_BAD_REQUEST,
                    'File upload failed',
                    VALIDATION_ERROR,
                    {'code': exc.code, 'message': exc.message},
                ) from exc
            logger.info(
                'Stored certificate %s for student %s (%d bytes, %s)',
                uploaded.path,
                student_id,
                uploaded.size,
                uploaded.mimetype,
            )

        achievement = Achievement(
            student_id=student_id,
            title=data.title,
            description=data.description,
            type=data.type,
            date=data.date,
            certificate_path=uploaded.public_url if uploaded is not None else None,
        )
        db.add(achievement)
        db.commit()
        db.refresh(achievement)

        return success_response(AchievementResponse.model_validate(achievement), 'Achievement added successfully')
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create achievement for %s', student_id)
        if uploaded is not None:
            discard_upload(uploaded)
        raise database_unavailable() from exc


@router.get('/uploads/{student_id}/{file_path:path}')
def get_uploaded_file(
    student_id: str,
    file_path: str,
    session: AuthSession = Depends(require_session),
    access: AccessControl = Depends(get_access_control),
):
    try:
        if not access.can_access_student(session, student_id):
            raise forbidden('Access denied to this file')
    except SQLAlchemyError as exc:
        logger.exception('Failed to check file access for %s', student_id)
        raise database_unavailable() from exc

    resolved = resolve_upload_path(student_id, file_path)
    if resolved is None:
        raise forbidden('Invalid file path')
    if not os.path.isfile(resolved):
        raise not_found('File not found')

    extension = os.path.splitext(resolved)[1].lower()
    return FileResponse(
        resolved,
        media_type=CONTENT_TYPES_BY_EXTENSION.get(extension, 'application/octet-stream'),
        headers={
            'Content-Disposition': f'inline; filename="{os.path.basename(resolved)}"',
            'Cache-Control': 'private, max-age=3600',
        },
    )

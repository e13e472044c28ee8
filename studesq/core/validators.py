from pydantic import BaseModel, EmailStr, field_validator


class EmailPayload(BaseModel):
    """Request body carrying a single email address, stored lower-cased."""

    email: EmailStr

    @field_validator('email', mode='before')
    @classmethod
    def strip_email(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator('email', mode='after')
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()

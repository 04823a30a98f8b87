"""
Pydantic schemas for the collection agency directory.
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from finance_console.models.enums import AgencyType

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class AgencyFields(BaseModel):
    """Optional address and contact details shared by create and update."""
    address_line1: str | None = Field(default=None, max_length=200)
    address_line2: str | None = Field(default=None, max_length=200)
    city: str | None = Field(default=None, max_length=100)
    state: str | None = Field(default=None, max_length=50)
    zip_code: str | None = Field(default=None, max_length=20)
    contact_person: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=50)
    fax: str | None = Field(default=None, max_length=50)
    email: str | None = Field(default=None, max_length=200, pattern=EMAIL_PATTERN)
    website: str | None = Field(default=None, max_length=300)
    social_media_linkedin: str | None = Field(default=None, max_length=300)
    social_media_facebook: str | None = Field(default=None, max_length=300)
    social_media_twitter: str | None = Field(default=None, max_length=300)
    notes: str | None = None

    @field_validator(
        "address_line1", "address_line2", "city", "state", "zip_code",
        "contact_person", "phone", "fax", "email", "website",
        "social_media_linkedin", "social_media_facebook",
        "social_media_twitter", "notes",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v):
        # Empty form fields are stored as NULL
        if isinstance(v, str) and not v.strip():
            return None
        return v


class AgencyCreate(AgencyFields):
    name: str = Field(min_length=1, max_length=200)
    type: AgencyType = AgencyType.COLLECTION_AGENCY

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class AgencyUpdate(AgencyFields):
    """Only the fields sent are changed."""
    name: str | None = Field(default=None, min_length=1, max_length=200)
    type: AgencyType | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class AgencyResponse(BaseModel):
    id: int
    name: str
    type: AgencyType
    address_line1: str | None
    address_line2: str | None
    city: str | None
    state: str | None
    zip_code: str | None
    contact_person: str | None
    phone: str | None
    fax: str | None
    email: str | None
    website: str | None
    social_media_linkedin: str | None
    social_media_facebook: str | None
    social_media_twitter: str | None
    notes: str | None
    active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

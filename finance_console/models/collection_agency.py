"""
Collection agency model.

The directory of law firms and collection agencies that garnishment
profiles are filed through. Names are unique across the directory,
deactivated entries included. Agencies are never deleted: setting
active to False hides them from the directory while profiles that
reference them keep their link.
"""

from datetime import datetime

from sqlalchemy import String, Text, Boolean, DateTime, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from finance_console.models.base import Base
from finance_console.models.enums import AgencyType


class CollectionAgency(Base):
    __tablename__ = "collection_agencies"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    type: Mapped[AgencyType] = mapped_column(
        SAEnum(AgencyType, name="agency_type_enum", create_constraint=True),
        nullable=False,
        default=AgencyType.COLLECTION_AGENCY,
    )

    # Mailing address
    address_line1: Mapped[str | None] = mapped_column(String(200), nullable=True)
    address_line2: Mapped[str | None] = mapped_column(String(200), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Contact
    contact_person: Mapped[str | None] = mapped_column(String(200), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    fax: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    website: Mapped[str | None] = mapped_column(String(300), nullable=True)
    social_media_linkedin: Mapped[str | None] = mapped_column(
        String(300), nullable=True
    )
    social_media_facebook: Mapped[str | None] = mapped_column(
        String(300), nullable=True
    )
    social_media_twitter: Mapped[str | None] = mapped_column(
        String(300), nullable=True
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self) -> str:
        state = "active" if self.active else "inactive"
        return f"<CollectionAgency {self.name} ({self.type.value}, {state})>"

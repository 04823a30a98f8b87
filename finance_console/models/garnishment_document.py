"""
Supporting document reference.

The bytes live in object storage; this row only keeps the storage
path and file metadata, attached to a profile and optionally to
one of its installments.
"""

from datetime import datetime

from sqlalchemy import String, Text, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from finance_console.models.base import Base


class GarnishmentDocument(Base):
    __tablename__ = "garnishment_documents"

    id: Mapped[int] = mapped_column(primary_key=True)
    profile_id: Mapped[int] = mapped_column(
        ForeignKey("garnishment_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    installment_id: Mapped[int | None] = mapped_column(
        ForeignKey("garnishment_installments.id", ondelete="CASCADE"),
        nullable=True,
    )
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_size: Mapped[int] = mapped_column(nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    uploaded_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

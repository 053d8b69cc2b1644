"""
Modelos ORM del store de metadata.

Un registro por (documento, namespace de schema). El contenido se guarda
como JSON ya validado; `revision` crece en cada escritura y se usa para
detectar escrituras concurrentes.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class MetadataRecord(Base):
    __tablename__ = "metadata_records"
    __table_args__ = (
        UniqueConstraint("document_id", "schema_name", name="uq_metadata_document_schema"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    document_id: Mapped[str] = mapped_column(String(64), index=True)
    schema_name: Mapped[str] = mapped_column(String(64))

    revision: Mapped[int] = mapped_column(Integer, default=0)

    # Registro validado (JSON)
    data_json: Mapped[str] = mapped_column(Text, default="{}")

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

"""Mill sheet records (``material_control``)."""

from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database.base import Base


class MaterialControl(Base):
    __tablename__ = "material_control"

    id_material_control = Column(Integer, primary_key=True, autoincrement=True)
    material = Column(String(255), nullable=False)
    tanggal_report = Column(Date, nullable=True)
    tanggal_expire = Column(Date, nullable=True)
    status = Column(Boolean, default=True)
    file_url = Column(String(500), default="")

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    id_supplier = Column(Integer, ForeignKey("supplier.id_supplier", ondelete="SET NULL"), nullable=True)
    id_part_name = Column(Integer, ForeignKey("part_name.id_part_name", ondelete="SET NULL"), nullable=True)
    id_part_number = Column(Integer, ForeignKey("part_number.id_part_number", ondelete="SET NULL"), nullable=True)
    id_jenis_dokumen = Column(
        Integer, ForeignKey("jenis_dokumen.id_jenis_dokumen", ondelete="SET NULL"), nullable=True
    )

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )

    owner = relationship("User", back_populates="materials")
    supplier = relationship("Supplier")
    part_name = relationship("PartName")
    part_number = relationship("PartNumber")
    jenis_dokumen = relationship("DocumentType")

    __table_args__ = (
        Index("idx_material_status_expire", "status", "tanggal_expire"),
        Index("idx_material_user", "user_id"),
    )

    @property
    def supplier_name(self) -> str | None:
        return self.supplier.nama if self.supplier else None

    @property
    def part_name_name(self) -> str | None:
        return self.part_name.nama if self.part_name else None

    @property
    def part_number_name(self) -> str | None:
        return self.part_number.nama if self.part_number else None

    @property
    def document_type_name(self) -> str | None:
        return self.jenis_dokumen.nama if self.jenis_dokumen else None

    @property
    def owner_email(self) -> str | None:
        return self.owner.email if self.owner else None

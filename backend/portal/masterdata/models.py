"""Reference data maintained by administrators.

Each lookup is a plain id + display name (``nama``) table.
"""

from sqlalchemy import Column, Integer, String

from ..database.base import Base


class Supplier(Base):
    __tablename__ = "supplier"

    id_supplier = Column(Integer, primary_key=True, autoincrement=True)
    nama = Column(String(255), nullable=False)


class PartName(Base):
    __tablename__ = "part_name"

    id_part_name = Column(Integer, primary_key=True, autoincrement=True)
    nama = Column(String(255), nullable=False)


class PartNumber(Base):
    __tablename__ = "part_number"

    id_part_number = Column(Integer, primary_key=True, autoincrement=True)
    nama = Column(String(255), nullable=False)


class DocumentType(Base):
    __tablename__ = "jenis_dokumen"

    id_jenis_dokumen = Column(Integer, primary_key=True, autoincrement=True)
    nama = Column(String(255), nullable=False)

"""Read queries over mill sheet records used by the reminder jobs."""

import logging
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from .models import MaterialControl

logger = logging.getLogger(__name__)

_LOOKUPS = (
    joinedload(MaterialControl.supplier),
    joinedload(MaterialControl.part_name),
    joinedload(MaterialControl.part_number),
    joinedload(MaterialControl.jenis_dokumen),
)


class RecordQueryError(Exception):
    """Raised when the record repository cannot be read."""


def get_expiring_records(db: Session, start: date, end: date) -> list[MaterialControl]:
    """Active records whose expiry date falls in [start, end], inclusive."""
    try:
        return (
            db.query(MaterialControl)
            .options(*_LOOKUPS)
            .filter(
                MaterialControl.status == True,  # noqa: E712
                MaterialControl.tanggal_expire >= start,
                MaterialControl.tanggal_expire <= end,
            )
            .all()
        )
    except SQLAlchemyError as exc:
        logger.error("Expiring records query failed: %s", exc)
        raise RecordQueryError(str(exc)) from exc


def get_owned_expiring_records(db: Session, start: date, end: date) -> list[MaterialControl]:
    """Like get_expiring_records, restricted to records with an owner, owner loaded."""
    try:
        return (
            db.query(MaterialControl)
            .options(*_LOOKUPS, joinedload(MaterialControl.owner))
            .filter(
                MaterialControl.status == True,  # noqa: E712
                MaterialControl.user_id.isnot(None),
                MaterialControl.tanggal_expire >= start,
                MaterialControl.tanggal_expire <= end,
            )
            .all()
        )
    except SQLAlchemyError as exc:
        logger.error("Owned expiring records query failed: %s", exc)
        raise RecordQueryError(str(exc)) from exc


def summarize_record(record: MaterialControl) -> dict:
    return {
        "id": record.id_material_control,
        "material": record.material,
        "expire_date": record.tanggal_expire.isoformat() if record.tanggal_expire else None,
    }

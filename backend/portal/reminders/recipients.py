"""Who receives which reminder.

Monthly milestone reminders go to each record's owner, one email per owner.
Daily expiry alerts go to a shared distribution list of admins and managers.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.models import User
from ..config import Settings
from .windows import BucketedRecords, MilestoneBucket, classify

logger = logging.getLogger(__name__)


@dataclass
class RecipientGroup:
    key: str
    email: str
    user_id: UUID | None = None
    name: str = ""
    records: list = field(default_factory=list)
    buckets: BucketedRecords = field(default_factory=BucketedRecords)

    def add(self, record, bucket: MilestoneBucket) -> None:
        self.records.append(record)
        self.buckets.get(bucket).append(record)

    @property
    def breakdown(self) -> dict[str, int]:
        return self.buckets.breakdown()


def group_by_recipient(records: Iterable, tolerance_days: int = 3) -> dict[str, RecipientGroup]:
    """Group bucketed records by owning user, in first-seen order.

    Records without an owner email are dropped. Records that classify as
    ``other`` are not expected here but are kept out of the groups as well.
    """
    groups: dict[str, RecipientGroup] = {}
    for record in records:
        email = (getattr(record, "owner_email", None) or "").strip()
        if not email:
            logger.debug("Skipping record %s: owner has no email", getattr(record, "id_material_control", "?"))
            continue

        bucket = classify(record, tolerance_days)
        if bucket is MilestoneBucket.OTHER:
            continue

        user_id = getattr(record, "user_id", None)
        key = str(user_id) if user_id else email.lower()
        group = groups.get(key)
        if group is None:
            group = RecipientGroup(key=key, email=email, user_id=user_id, name=record.owner.nama or "")
            groups[key] = group
        group.add(record, bucket)
    return groups


def _dedupe(addresses: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for address in addresses:
        cleaned = (address or "").strip()
        if not cleaned or cleaned.lower() in seen:
            continue
        seen.add(cleaned.lower())
        result.append(cleaned)
    return result


def monitoring_recipients(settings: Settings) -> list[str]:
    return _dedupe([settings.reminder_monitoring_email])


def resolve_distribution_list(db: Session, settings: Settings) -> list[str]:
    """Verified admins/managers plus the configured fallback addresses.

    Falls back to the monitoring address when the user query fails or
    returns nobody. Never raises.
    """
    try:
        users = (
            db.query(User.email)
            .filter(
                User.email_verified == True,  # noqa: E712
                User.role.in_(settings.reminder_recipient_roles),
            )
            .all()
        )
    except SQLAlchemyError as exc:
        logger.error("Recipient lookup failed, using monitoring address: %s", exc)
        db.rollback()
        return monitoring_recipients(settings)

    emails = [row.email for row in users if row.email]
    if not emails:
        logger.warning("No verified %s users found, using monitoring address", "/".join(settings.reminder_recipient_roles))
        return monitoring_recipients(settings)

    recipients = _dedupe([*emails, *settings.reminder_fallback_recipients])
    logger.info("Resolved %d reminder recipients (%d from users table)", len(recipients), len(emails))
    return recipients

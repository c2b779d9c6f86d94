import logging
from datetime import datetime, timedelta

from pydantic import ValidationError
from sqlalchemy.orm import Session

from educonnect.core.utils import as_naive_utc, utc_now
from educonnect.db.database import SessionLocal
from educonnect.models.message import Message, ReminderDispatch
from educonnect.schemas.message import ReminderSettings
from educonnect.services.message_service import reminder_targets
from educonnect.services.notification_service import send_reminders

logger = logging.getLogger(__name__)

PERIODIC_INTERVAL_HOURS = 24


def due_reminder_slots(message: Message, reminder: ReminderSettings, now: datetime) -> list[str]:
    """Keys of the reminder slots that are due at ``now``.

    * ``date``: the explicit reminder date has passed
    * ``timing:{i}``: hours after sending, or hours before the deadline
    * ``repeat:{n}``: the n-th periodic/custom interval since sending

    Nothing is due once the deadline has passed.
    """
    created = as_naive_utc(message.created_at)
    deadline = as_naive_utc(message.deadline)
    if created is None or (deadline is not None and deadline < now):
        return []

    slots = []
    if reminder.reminder_date is not None and as_naive_utc(reminder.reminder_date) <= now:
        slots.append("date")

    for i, timing in enumerate(reminder.timing):
        if timing.type == "after_send":
            fire_at = created + timedelta(hours=timing.value)
        elif deadline is not None:
            fire_at = deadline - timedelta(hours=timing.value)
        else:
            continue
        if fire_at <= now:
            slots.append(f"timing:{i}")

    if reminder.frequency != "once":
        hours = PERIODIC_INTERVAL_HOURS if reminder.frequency == "periodic" else reminder.custom_frequency
        periods = int((now - created) / timedelta(hours=hours))
        if periods >= 1:
            # Only the latest period; missed ones are not replayed
            slots.append(f"repeat:{periods}")

    return slots


def run_reminder_check(db: Session, now: datetime | None = None) -> int:
    """Send every due automatic reminder. Returns the number of slots dispatched."""
    now = now or utc_now()
    messages = (
        db.query(Message)
        .filter(Message.parent_message_id.is_(None), Message.reminder.isnot(None))
        .all()
    )

    dispatched = 0
    for message in messages:
        if not message.reminder:
            continue
        try:
            reminder = ReminderSettings.model_validate(message.reminder)
        except ValidationError:
            logger.warning(f"Skipping message {message.id}: invalid reminder settings")
            continue
        if not reminder.enabled:
            continue

        sent_keys = {
            row[0] for row in
            db.query(ReminderDispatch.key).filter(ReminderDispatch.message_id == message.id).all()
        }
        for key in due_reminder_slots(message, reminder, now):
            if key in sent_keys:
                continue
            targets = reminder_targets(
                db, message, reminder.target, no_reply_only=reminder.remind_if_no_reply,
            )
            count = send_reminders(db, message, targets, reminder_type="auto", note=reminder.message)
            db.add(ReminderDispatch(message_id=message.id, key=key, recipients_notified=count))
            sent_keys.add(key)
            dispatched += 1
            logger.debug(f"Reminder slot {key} dispatched | message_id={message.id} | recipients={count}")

    db.commit()
    return dispatched


def check_message_reminders():
    """Scheduled entry point for automatic message reminders."""
    logger.info("Running message reminder check...")
    db = SessionLocal()
    try:
        dispatched = run_reminder_check(db)
        logger.info(f"Message reminder check complete | slots={dispatched}")
    except Exception as e:
        logger.error(f"Message reminder job failed | error={e}", exc_info=True)
        db.rollback()
    finally:
        db.close()

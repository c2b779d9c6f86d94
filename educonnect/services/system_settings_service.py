import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from educonnect.db.database import SessionLocal
from educonnect.models.system_setting import SystemSetting

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1


def get_system_settings(db: Session) -> SystemSetting:
    """Return the settings row, creating it with defaults if missing."""
    setting = db.get(SystemSetting, SETTINGS_ROW_ID)
    if setting is not None:
        return setting
    setting = SystemSetting(id=SETTINGS_ROW_ID)
    try:
        with db.begin_nested():
            db.add(setting)
            db.flush()
    except IntegrityError:
        # Created concurrently by another request
        setting = db.get(SystemSetting, SETTINGS_ROW_ID)
    return setting


def init_system_settings() -> None:
    """Ensure the settings row exists. Existing values are left untouched."""
    db = SessionLocal()
    try:
        existing = db.get(SystemSetting, SETTINGS_ROW_ID)
        if existing is None:
            get_system_settings(db)
            db.commit()
            logger.info("Initialized default system settings")
        else:
            logger.debug("System settings already present")
    finally:
        db.close()

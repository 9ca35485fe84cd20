"""Key/value system settings storage (holds the design-service token)."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from common.logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()


class SystemSettingRow(Base):
    """SQLAlchemy model for one system setting."""

    __tablename__ = "system_settings"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SystemSettingsStorage:
    """SQL-backed key/value settings store."""

    def __init__(self, database_url: str):
        self._engine = create_engine(database_url)
        self._session_factory = sessionmaker(bind=self._engine)

        Base.metadata.create_all(self._engine)
        logger.info("System settings storage initialized", url=self._engine.url.render_as_string())

    def get(self, key: str) -> Optional[str]:
        with self._session_factory() as session:
            row = session.get(SystemSettingRow, key)
            return row.value if row else None

    def set(self, key: str, value: str) -> None:
        """Insert or update ``key``."""
        with self._session_factory() as session:
            row = session.get(SystemSettingRow, key)
            now = datetime.utcnow()
            if row:
                row.value = value
                row.updated_at = now
            else:
                session.add(SystemSettingRow(key=key, value=value, created_at=now, updated_at=now))
            session.commit()

    def delete(self, key: str) -> bool:
        with self._session_factory() as session:
            deleted = session.query(SystemSettingRow).filter_by(key=key).delete()
            session.commit()
            return deleted > 0

    def dispose(self) -> None:
        self._engine.dispose()


__all__ = ["SystemSettingRow", "SystemSettingsStorage"]

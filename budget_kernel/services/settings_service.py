"""
SettingsService -- the process-wide key/value settings.

The only setting the engine reads is ``timezone``.  Callers read it once
per operation and build a ``CalendarContext`` from it; nothing below that
point looks the setting up again.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from budget_kernel.domain.calendar import DEFAULT_TIMEZONE, is_valid_timezone, resolve_timezone
from budget_kernel.logging_config import get_logger
from budget_kernel.models.user_setting import TIMEZONE_KEY, UserSetting
from budget_kernel.services.base import BaseService

logger = get_logger("services.settings")


class SettingsService(BaseService[UserSetting]):

    def __init__(self, session: Session, default_timezone: str = DEFAULT_TIMEZONE):
        super().__init__(session)
        self._default_timezone = default_timezone

    def _row(self, key: str) -> UserSetting | None:
        return self.session.execute(
            select(UserSetting).where(UserSetting.key == key)
        ).scalar_one_or_none()

    def get(self, key: str, default: str | None = None) -> str | None:
        row = self._row(key)
        return row.value if row is not None else default

    def set(self, key: str, value: str) -> None:
        row = self._row(key)
        if row is None:
            self.session.add(UserSetting(key=key, value=value))
        else:
            row.value = value
        self.session.flush()

    def get_timezone(self) -> str:
        """Stored timezone, or the default when unset or unusable."""
        stored = self.get(TIMEZONE_KEY)
        if stored is None:
            return self._default_timezone
        if not is_valid_timezone(stored):
            logger.warning(
                "stored_timezone_invalid",
                extra={"stored": stored, "fallback": DEFAULT_TIMEZONE},
            )
            return DEFAULT_TIMEZONE
        return stored

    def set_timezone(self, timezone_name: str) -> str:
        """Persist a new timezone.

        Existing period dates are not recomputed; only later classification
        and generation see the new zone.

        Raises:
            InvalidTimezoneError: unknown IANA name.
        """
        resolve_timezone(timezone_name)
        previous = self.get(TIMEZONE_KEY)
        self.set(TIMEZONE_KEY, timezone_name)
        logger.info(
            "timezone_changed",
            extra={"previous": previous, "timezone": timezone_name},
        )
        return timezone_name

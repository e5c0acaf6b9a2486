"""
SettingsService -- user settings, chiefly the process-wide timezone.

Responsibility:
    Reads and writes key/value settings.  The timezone is read at call
    time by every pass of the engine and passed explicitly into calendar
    math; it is never cached.

Architecture position:
    Kernel > Services -- imperative shell.

Failure modes:
    - InvalidTimezoneError from set_timezone() for unknown zone names.
    - A stored zone that no longer resolves is logged and the default is
      used, so a bad row cannot stop the scheduler.
"""

from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from budget_kernel.domain.calendar import DEFAULT_TIMEZONE, resolve_timezone
from budget_kernel.exceptions import InvalidTimezoneError
from budget_kernel.logging_config import get_logger
from budget_kernel.models.setting import TIMEZONE_KEY, UserSetting
from budget_kernel.services.base import BaseService

logger = get_logger("services.settings")


class SettingsService(BaseService[UserSetting]):
    def __init__(self, session: Session, default_timezone: str = DEFAULT_TIMEZONE):
        super().__init__(session)
        self._default_timezone = default_timezone

    def get(self, key: str, default: str | None = None) -> str | None:
        row = self._get_row(key)
        return row.value if row is not None else default

    def set(self, key: str, value: str) -> None:
        row = self._get_row(key)
        if row is None:
            self.session.add(UserSetting(key=key, value=value))
        else:
            row.value = value
        self.session.flush()

    def all(self) -> dict[str, str]:
        rows = self.session.execute(
            select(UserSetting).order_by(UserSetting.key)
        ).scalars()
        return {row.key: row.value for row in rows}

    def get_timezone_name(self) -> str:
        name = self.get(TIMEZONE_KEY, self._default_timezone)
        try:
            resolve_timezone(name)
        except InvalidTimezoneError:
            logger.warning(
                "stored_timezone_invalid",
                extra={"timezone": name, "fallback": self._default_timezone},
            )
            return self._default_timezone
        return name

    def get_timezone(self) -> ZoneInfo:
        return resolve_timezone(self.get_timezone_name())

    def set_timezone(self, name: str) -> ZoneInfo:
        """
        Store a new process-wide timezone.

        Existing periods keep their stored dates; only periods generated
        afterwards use the new zone.

        Raises:
            InvalidTimezoneError: If ``name`` is not a known IANA zone.
        """
        zone = resolve_timezone(name)
        previous = self.get(TIMEZONE_KEY, self._default_timezone)
        self.set(TIMEZONE_KEY, name)
        logger.info(
            "timezone_changed",
            extra={"previous_timezone": previous, "timezone": name},
        )
        return zone

    def _get_row(self, key: str) -> UserSetting | None:
        return self.session.execute(
            select(UserSetting).where(UserSetting.key == key)
        ).scalar_one_or_none()

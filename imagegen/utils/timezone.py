import calendar
import zoneinfo

from datetime import datetime

from imagegen.core.conf import settings


class TimeZone:
    def __init__(self) -> None:
        """Initialize the timezone converter"""
        self.tz_info = zoneinfo.ZoneInfo(settings.DATETIME_TIMEZONE)

    def now(self) -> datetime:
        """Current time in the configured timezone"""
        return datetime.now(self.tz_info)

    def f_datetime(self, dt: datetime) -> datetime:
        """
        Convert a datetime to the configured timezone

        :param dt: datetime to convert
        :return:
        """
        return dt.astimezone(self.tz_info)

    @staticmethod
    def add_months(dt: datetime, months: int) -> datetime:
        """
        Shift a datetime by whole calendar months, clamping the day to the target month

        :param dt: start datetime
        :param months: number of months to add
        :return:
        """
        month_index = dt.month - 1 + months
        year = dt.year + month_index // 12
        month = month_index % 12 + 1
        day = min(dt.day, calendar.monthrange(year, month)[1])
        return dt.replace(year=year, month=month, day=day)


timezone: TimeZone = TimeZone()

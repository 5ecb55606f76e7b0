import pandas as pd
from datetime import datetime, timezone
from ministry_scanner.database.db_manager import DatabaseManager
from ministry_scanner.database.models import Member, Minister
from ministry_scanner.utils.logging import setup_logger

KINDS = ('members', 'ministers', 'both')
FORECAST_DAYS = 7


class GrowthMetrics:
    """
    Daily registration growth of members and ministers.
    """

    def __init__(self, db_manager: DatabaseManager = None):
        self.db = db_manager or DatabaseManager()
        self.models = {
            'members': Member(self.db),
            'ministers': Minister(self.db),
        }
        self.logger = setup_logger()

    @staticmethod
    def _today():
        # created_at is stored by sqlite in UTC
        return datetime.now(timezone.utc).date()

    def _columns(self, kind: str):
        if kind not in KINDS:
            raise ValueError(f"kind must be one of {', '.join(KINDS)}, got {kind!r}")
        return ['members', 'ministers'] if kind == 'both' else [kind]

    def _daily_counts(self, name: str, days: int, index: pd.DatetimeIndex) -> pd.Series:
        rows = self.models[name].created_since(days)
        if not rows:
            return pd.Series(0, index=index, dtype='int64')

        created = pd.to_datetime(pd.DataFrame(rows)['created_at']).dt.normalize()
        counts = created.value_counts()
        return counts.reindex(index, fill_value=0).astype('int64')

    def daily_growth(self, days: int = 30, kind: str = 'both') -> pd.DataFrame:
        """
        One row per day for the last `days` days, today included.

        Args:
            days: Length of the period
            kind: 'members', 'ministers' or 'both'

        Returns:
            DataFrame with date, date_formatted and, per selected kind,
            the daily count and its running total (e.g. members,
            members_cumulative). Days without registrations are 0.
        """
        columns = self._columns(kind)
        days = max(int(days), 1)
        index = pd.date_range(end=pd.Timestamp(self._today()), periods=days, freq='D')

        df = pd.DataFrame({'date': index.strftime('%Y-%m-%d'),
                           'date_formatted': index.strftime('%b %d').str.replace(' 0', ' ', regex=False)})
        for name in columns:
            counts = self._daily_counts(name, days, index)
            df[name] = counts.to_numpy()
            df[f'{name}_cumulative'] = counts.cumsum().to_numpy()

        self.logger.info(f"Growth computed for last {days} days ({kind})")
        return df

    def forecast(self, growth: pd.DataFrame, days: int = FORECAST_DAYS) -> pd.DataFrame:
        """
        Project the next `days` days from the average of the last week.

        Each projected day adds the rounded recent daily average to the
        running total.
        """
        if growth.empty:
            return pd.DataFrame()

        columns = [name for name in ('members', 'ministers') if name in growth.columns]
        last_date = pd.Timestamp(growth['date'].iloc[-1])
        index = pd.date_range(start=last_date + pd.Timedelta(days=1), periods=days, freq='D')

        df = pd.DataFrame({'date': index.strftime('%Y-%m-%d'),
                           'date_formatted': index.strftime('%b %d').str.replace(' 0', ' ', regex=False)})
        for name in columns:
            average = growth[name].tail(7).mean()
            daily = int(round(average))
            total = int(growth[f'{name}_cumulative'].iloc[-1])
            df[name] = daily
            df[f'{name}_cumulative'] = [total + daily * step for step in range(1, days + 1)]
        df['is_forecast'] = True
        return df

    def summary(self, days: int = 30):
        """
        Totals over the whole database plus the period label.
        """
        return {
            'total_members': self.models['members'].count(),
            'total_ministers': self.models['ministers'].count(),
            'period': f"Last {days} days",
            'forecast_days': FORECAST_DAYS,
        }

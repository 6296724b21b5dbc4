"""
Service de calcul des temps / Time calculation service.
Plages horaires HH:MM, jours de semaine, chevauchement de nuit, fin estimée.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal

from app.utils.money import SIXTY, ZERO, round_money, to_decimal

MINUTES_PER_DAY = 1440


class TimeCalculatorService:
    """Calculs horaires / Time calculations."""

    @staticmethod
    def calculate_travel_time_minutes(distance_km: Decimal, speed_kmh: Decimal) -> Decimal:
        """
        Temps de route en minutes entières / Travel time in whole minutes.
        Vitesse nulle : 0 / Zero speed: 0.
        """
        distance_km = to_decimal(distance_km)
        speed_kmh = to_decimal(speed_kmh)
        if speed_kmh <= 0:
            return ZERO
        return round_money(distance_km / speed_kmh * SIXTY, "1")

    @staticmethod
    def time_to_minutes(time_str: str) -> int:
        """Convertir HH:MM en minutes depuis minuit / Convert HH:MM to minutes since midnight."""
        hours, mins = map(int, time_str.split(":")[:2])
        return hours * 60 + mins

    @staticmethod
    def is_time_in_range(moment: datetime, start: str, end: str) -> bool:
        """
        Heure dans la plage [début, fin[ / Time within [start, end[.
        Plage de nuit si début > fin (ex. 22:00-06:00) / Overnight if start > end.
        """
        current = moment.hour * 60 + moment.minute
        start_min = TimeCalculatorService.time_to_minutes(start)
        end_min = TimeCalculatorService.time_to_minutes(end)
        if start_min > end_min:
            return current >= start_min or current < end_min
        return start_min <= current < end_min

    @staticmethod
    def day_index(moment: datetime | date) -> int:
        """Jour de semaine, 0 = dimanche / Day of week, 0 = Sunday."""
        return (moment.weekday() + 1) % 7

    @staticmethod
    def is_day_in_set(moment: datetime, days_csv: str) -> bool:
        """Jour dans la liste "0,6" / Day in the "0,6" list."""
        days = {int(d) for d in days_csv.split(",") if d.strip()}
        return TimeCalculatorService.day_index(moment) in days

    @staticmethod
    def is_within_date_range(moment: datetime, start: date, end: date) -> bool:
        """Date de fin incluse / End date inclusive."""
        return start <= moment.date() <= end

    @staticmethod
    def estimate_end_at(pickup_at: datetime | None, duration_minutes: Decimal | int) -> datetime | None:
        """Fin estimée de la course / Estimated trip end."""
        if pickup_at is None:
            return None
        return pickup_at + timedelta(minutes=float(duration_minutes))

    @staticmethod
    def night_overlap_minutes(start_at: datetime, end_at: datetime, night_start: str, night_end: str) -> int:
        """
        Minutes de course dans la plage de nuit / Trip minutes inside the night window.
        Découpage jour par jour / Day-by-day split.
        """
        total = round((end_at - start_at).total_seconds() / 60)
        if total <= 0:
            return 0
        ns = TimeCalculatorService.time_to_minutes(night_start)
        ne = TimeCalculatorService.time_to_minutes(night_end)
        windows = [(ns, MINUTES_PER_DAY), (0, ne)] if ns > ne else [(ns, ne)]

        night = 0
        day = datetime.combine(start_at.date(), time.min, tzinfo=start_at.tzinfo)
        while day < end_at:
            next_day = day + timedelta(days=1)
            seg_start = max(start_at, day)
            seg_end = min(end_at, next_day)
            if seg_start < seg_end:
                a = round((seg_start - day).total_seconds() / 60)
                b = round((seg_end - day).total_seconds() / 60)
                for w_start, w_end in windows:
                    night += max(0, min(b, w_end) - max(a, w_start))
            day = next_day
        return min(night, total)

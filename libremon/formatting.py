from __future__ import annotations

from decimal import ROUND_HALF_UP, Context, Decimal
import math

from libremon.sensors import SensorType

BYTES_PER_MEGABYTE = 1048576
TICKS_PER_SECOND = 10_000_000
TICKS_PER_DAY = 86_400 * TICKS_PER_SECOND

_WIDE = Context(prec=400)

# (fraction digits, unit suffix) per sensor kind.
_TEMPLATES: dict[SensorType, tuple[int, str]] = {
    SensorType.VOLTAGE: (3, "V"),
    SensorType.CURRENT: (3, "A"),
    SensorType.CLOCK: (1, "MHz"),
    SensorType.TEMPERATURE: (1, "°C"),
    SensorType.LOAD: (1, "%"),
    SensorType.FAN: (0, "RPM"),
    SensorType.FLOW: (1, "L/h"),
    SensorType.CONTROL: (1, "%"),
    SensorType.LEVEL: (1, "%"),
    SensorType.POWER: (1, "W"),
    SensorType.DATA: (1, "GB"),
    SensorType.SMALL_DATA: (1, "MB"),
    SensorType.FACTOR: (3, ""),
    SensorType.FREQUENCY: (1, "Hz"),
    SensorType.TIMING: (3, "ns"),
    SensorType.ENERGY: (0, "mWh"),
    SensorType.NOISE: (0, "dBA"),
    SensorType.CONDUCTIVITY: (1, "µS/cm"),
    SensorType.HUMIDITY: (0, "%"),
}


def _non_finite(value: float) -> str | None:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return None


def fixed(value: float, digits: int) -> str:
    """Fixed-point rendering with ties rounded away from zero."""
    special = _non_finite(value)
    if special is not None:
        return special
    quantum = Decimal(1).scaleb(-digits)
    rounded = Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP, context=_WIDE)
    return f"{rounded:f}"


def round_trip(value: float) -> str:
    special = _non_finite(value)
    if special is not None:
        return special
    text = repr(float(value))
    if text.endswith(".0"):
        text = text[:-2]
    return text.replace("e", "E")


def format_throughput(bytes_per_second: float) -> str:
    if bytes_per_second < BYTES_PER_MEGABYTE:
        return f"{fixed(bytes_per_second / 1024, 1)} KB/s"
    return f"{fixed(bytes_per_second / BYTES_PER_MEGABYTE, 1)} MB/s"


def format_timespan(seconds: float) -> str:
    """Render seconds in the general short timespan layout ``[-][d:]h:mm:ss[.FFFFFFF]``."""
    special = _non_finite(seconds)
    if special is not None:
        return special
    ticks = int(round(seconds * TICKS_PER_SECOND))
    sign = "-" if ticks < 0 else ""
    ticks = abs(ticks)
    days, ticks = divmod(ticks, TICKS_PER_DAY)
    whole_seconds, fraction = divmod(ticks, TICKS_PER_SECOND)
    hours, remainder = divmod(whole_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    text = f"{hours}:{minutes:02d}:{secs:02d}"
    if days:
        text = f"{days}:{text}"
    if fraction:
        text = f"{text}.{fraction:07d}".rstrip("0")
    return sign + text


def format_value(value: float | None, sensor_type: SensorType | str) -> str:
    if value is None:
        return ""
    if sensor_type is SensorType.THROUGHPUT:
        return format_throughput(value)
    if sensor_type is SensorType.TIME_SPAN:
        return format_timespan(value)
    template = _TEMPLATES.get(sensor_type)  # type: ignore[arg-type]
    if template is None:
        return round_trip(value)
    digits, unit = template
    number = fixed(value, digits)
    return f"{number} {unit}" if unit else number

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd


class ConfigurationError(ValueError):
    """Raised when a configuration value is missing or out of range."""


@dataclass(frozen=True)
class SignalParams:
    """Parameters of a baseline + seasonal + trend + AR(1) noise signal.

    The seasonal part is ``amplitude * sin(2*pi*t/period - phase)`` plus a
    semiannual ``amplitude2 * cos(4*pi*t/period + phase2)`` term.
    """

    baseline: float = 0.0
    amplitude: float = 0.0
    phase: float = 0.0
    amplitude2: float = 0.0
    phase2: float = 0.0
    trend_rate: float = 0.0
    phi: float = 0.0
    sigma: float = 1.0
    floor: Optional[float] = None
    ceiling: Optional[float] = None

    def validate(self, name: str = "signal") -> None:
        if not -1.0 < self.phi < 1.0:
            raise ConfigurationError(
                f"{name}.phi must satisfy |phi| < 1 for a stationary AR(1) process, got {self.phi}"
            )
        if self.sigma < 0 or not math.isfinite(self.sigma):
            raise ConfigurationError(f"{name}.sigma must be a finite value >= 0, got {self.sigma}")
        if self.floor is not None and self.ceiling is not None and self.floor > self.ceiling:
            raise ConfigurationError(
                f"{name}.floor ({self.floor}) is greater than {name}.ceiling ({self.ceiling})"
            )


@dataclass(frozen=True)
class HeatwaveEvent:
    start: pd.Timestamp
    duration: int
    peak_anomaly: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", pd.Timestamp(self.start).normalize())
        if int(self.duration) != self.duration or self.duration <= 0:
            raise ConfigurationError(f"Heatwave duration must be a positive integer, got {self.duration}")
        object.__setattr__(self, "duration", int(self.duration))

    @property
    def end(self) -> pd.Timestamp:
        return self.start + pd.Timedelta(days=self.duration - 1)


@dataclass(frozen=True)
class HeatwaveSchedule:
    """Randomised heatwave schedule, drawn independently for every calendar year."""

    events_min: int = 1
    events_max: int = 3
    start_offset_min: int = 150
    start_offset_max: int = 240
    duration_min: int = 5
    duration_max: int = 14
    peak_min: float = 5.0
    peak_max: float = 12.0

    def validate(self) -> None:
        _check_range("schedule.events", self.events_min, self.events_max, lower=0)
        _check_range("schedule.start_offset", self.start_offset_min, self.start_offset_max, lower=0)
        if self.start_offset_max > 365:
            raise ConfigurationError(
                f"schedule.start_offset_max must be <= 365, got {self.start_offset_max}"
            )
        _check_range("schedule.duration", self.duration_min, self.duration_max, lower=1)
        _check_range("schedule.peak", self.peak_min, self.peak_max)


HUMIDITY_FLOOR_MIN = 0.1


@dataclass(frozen=True)
class SecondaryParams:
    """Coefficients for variables derived from the daily temperature series."""

    humidity_intercept: float = 5.0
    humidity_slope: float = 0.3
    humidity_sigma: float = 1.0
    humidity_floor: float = 0.1
    humidity_factor_min: float = 0.8
    humidity_factor_max: float = 1.0
    precipitation: SignalParams = field(
        default_factory=lambda: SignalParams(
            baseline=2.0, amplitude=1.0, phase=1.8, phi=0.3, sigma=3.0, floor=0.0
        )
    )
    precipitation_factor_min: float = 0.0
    precipitation_factor_max: float = 0.5
    extreme_probability: float = 0.02
    extreme_min: float = 20.0
    extreme_max: float = 100.0
    cape_intercept: float = 500.0
    cape_temperature_slope: float = 10.0
    cape_temperature_reference: float = 15.0
    cape_humidity_slope: float = 5.0
    cape_humidity_reference: float = 10.0
    cape_sigma: float = 200.0
    cape_factor_min: float = 0.7
    cape_factor_max: float = 1.2

    def validate(self) -> None:
        self.precipitation.validate("precipitation")
        for name in ("humidity_sigma", "cape_sigma"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"secondary.{name} must be >= 0")
        if self.humidity_floor < HUMIDITY_FLOOR_MIN:
            raise ConfigurationError(
                f"secondary.humidity_floor must be >= {HUMIDITY_FLOOR_MIN}, got {self.humidity_floor}"
            )
        # heatwave days suppress humidity and precipitation, never amplify them
        _check_range(
            "secondary.humidity_factor", self.humidity_factor_min, self.humidity_factor_max, lower=0, upper=1
        )
        _check_range(
            "secondary.precipitation_factor",
            self.precipitation_factor_min,
            self.precipitation_factor_max,
            lower=0,
            upper=1,
        )
        _check_range("secondary.cape_factor", self.cape_factor_min, self.cape_factor_max, lower=0)
        _check_range("secondary.extreme", self.extreme_min, self.extreme_max, lower=0)
        if not 0.0 <= self.extreme_probability <= 1.0:
            raise ConfigurationError(
                f"secondary.extreme_probability must lie in [0, 1], got {self.extreme_probability}"
            )


DEFAULT_DAILY_TEMPERATURE = SignalParams(
    baseline=15.0,
    amplitude=10.0,
    phase=0.3,
    amplitude2=3.0,
    phase2=1.1,
    trend_rate=0.04,
    phi=0.6,
    sigma=2.0,
)


@dataclass
class HeatwaveConfig:
    start_date: pd.Timestamp = pd.Timestamp("2010-01-01")
    end_date: pd.Timestamp = pd.Timestamp("2019-12-31")
    seed: int = 1234
    temperature: SignalParams = DEFAULT_DAILY_TEMPERATURE
    schedule: HeatwaveSchedule = field(default_factory=HeatwaveSchedule)
    random_events: bool = True
    events: List[HeatwaveEvent] = field(default_factory=list)
    quantile: float = 0.9
    min_run_length: int = 3
    secondary: SecondaryParams = field(default_factory=SecondaryParams)
    output_dir: Path = Path("output")
    output_name: str = "synthetic_heatwaves.csv"
    delimiter: str = ","

    def __post_init__(self) -> None:
        self.start_date = pd.Timestamp(self.start_date).normalize()
        self.end_date = pd.Timestamp(self.end_date).normalize()
        self.output_dir = Path(self.output_dir)

    def validate(self) -> None:
        if self.end_date < self.start_date:
            raise ConfigurationError(
                f"Empty date range: end_date {self.end_date:%Y-%m-%d} precedes start_date {self.start_date:%Y-%m-%d}"
            )
        self.temperature.validate("temperature")
        self.schedule.validate()
        self.secondary.validate()
        if not 0.0 < self.quantile < 1.0:
            raise ConfigurationError(f"quantile must lie in (0, 1), got {self.quantile}")
        if self.min_run_length < 1:
            raise ConfigurationError(f"min_run_length must be >= 1, got {self.min_run_length}")
        if len(self.delimiter) != 1:
            raise ConfigurationError(f"delimiter must be a single character, got {self.delimiter!r}")


DEFAULT_MONTHLY_TEMPERATURE = SignalParams(amplitude=10.0, trend_rate=1.2 / 100, phi=0.6, sigma=1.5)
DEFAULT_MONTHLY_PRECIPITATION = SignalParams(
    baseline=80.0,
    amplitude=40.0,
    phase=-math.pi / 3,
    trend_rate=80.0 * 0.01 / 10,
    phi=0.5,
    sigma=20.0,
    floor=0.0,
)
DEFAULT_MONTHLY_HUMIDITY = SignalParams(
    baseline=75.0,
    amplitude=-8.0,
    trend_rate=-0.5 / 100,
    phi=0.4,
    sigma=2.0,
    floor=20.0,
    ceiling=100.0,
)


@dataclass
class MonthlyGridConfig:
    start_year: int = 1920
    end_year: int = 2025
    lat_min: float = 28.5
    lat_max: float = 29.5
    lon_min: float = 76.5
    lon_max: float = 77.5
    resolution: float = 1.0
    seed: int = 123
    temperature: SignalParams = DEFAULT_MONTHLY_TEMPERATURE
    precipitation: SignalParams = DEFAULT_MONTHLY_PRECIPITATION
    humidity: SignalParams = DEFAULT_MONTHLY_HUMIDITY
    output_dir: Path = Path("output")

    def validate(self) -> None:
        _check_range("years", self.start_year, self.end_year)
        _check_range("lat", self.lat_min, self.lat_max)
        _check_range("lon", self.lon_min, self.lon_max)
        if self.resolution <= 0:
            raise ConfigurationError(f"resolution must be positive, got {self.resolution}")
        self.temperature.validate("temperature")
        self.precipitation.validate("precipitation")
        self.humidity.validate("humidity")


@dataclass
class GmtaConfig:
    netcdf_path: Path = Path("gmta/Land_and_Ocean_LatLong1.nc")
    variable: str = "temperature"
    lon_min: float = 76.0
    lon_max: float = 78.0
    lat_min: float = 28.0
    lat_max: float = 30.0
    start_year: float = 1920
    end_year: float = 2025
    output_dir: Path = Path("gmta")
    output_name: str = "anomalies.csv"
    save_subset: bool = False

    def validate(self) -> None:
        _check_range("lon", self.lon_min, self.lon_max)
        _check_range("lat", self.lat_min, self.lat_max)
        _check_range("years", self.start_year, self.end_year)


@dataclass
class DriversConfig:
    mauna_loa_co2: Optional[Path] = None
    mauna_loa_ch4: Optional[Path] = None
    mauna_loa_n2o: Optional[Path] = None
    law_dome: Optional[Path] = None
    law_dome_sheet: str = "SplineFit20yr"
    ceds_dir: Optional[Path] = None
    ceds_pattern: str = "*.csv"
    ceds_species: Tuple[str, ...] = ("NOx", "NMVOC", "CO2", "CH4", "N2O")
    gcb_path: Optional[Path] = None
    gcb_sheet: str = "Historical Budget"
    gcb_skiprows: int = 0
    output_dir: Path = Path("output")

    def validate(self) -> None:
        modern = [self.mauna_loa_co2, self.mauna_loa_ch4, self.mauna_loa_n2o]
        if all(path is None for path in modern + [self.law_dome, self.gcb_path, self.ceds_dir]):
            raise ConfigurationError("No driver inputs configured; set at least one input path.")
        if self.ceds_dir is not None and self.gcb_path is None:
            raise ConfigurationError("ceds_dir requires gcb_path: CEDS totals are joined onto the carbon budget.")
        if self.gcb_skiprows < 0:
            raise ConfigurationError(f"gcb_skiprows must be >= 0, got {self.gcb_skiprows}")
        if not self.ceds_species:
            raise ConfigurationError("ceds_species must name at least one species.")


def _check_range(name: str, low, high, lower=None, upper=None) -> None:
    if low > high:
        raise ConfigurationError(f"{name}: minimum ({low}) is greater than maximum ({high})")
    if lower is not None and low < lower:
        raise ConfigurationError(f"{name}: minimum must be >= {lower}, got {low}")
    if upper is not None and high > upper:
        raise ConfigurationError(f"{name}: maximum must be <= {upper}, got {high}")


# ---------------------------------------------------------------------------
# key = value parsing
# ---------------------------------------------------------------------------

def read_key_values(path: str | Path) -> Dict[str, str]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    values: Dict[str, str] = {}
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip().lower()] = value.strip()
    return values


def _parse_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ConfigurationError(f"Expected a boolean, got {raw!r}")


def _parse_optional_float(raw: str) -> Optional[float]:
    return None if raw.lower() in {"", "none"} else float(raw)


def _parse_date(raw: str) -> pd.Timestamp:
    try:
        return pd.Timestamp(raw).normalize()
    except ValueError as exc:
        raise ConfigurationError(f"Invalid date {raw!r}") from exc


def parse_events(raw: str) -> List[HeatwaveEvent]:
    """Parse ``start/duration/peak`` entries separated by semicolons."""
    events: List[HeatwaveEvent] = []
    for chunk in raw.split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        parts = [part.strip() for part in chunk.split("/")]
        if len(parts) != 3:
            raise ConfigurationError(
                f"Heatwave event {chunk!r} must look like 'YYYY-MM-DD/duration/peak'"
            )
        start, duration, peak = parts
        events.append(HeatwaveEvent(_parse_date(start), int(duration), float(peak)))
    return events


def _scalar_converter(base, name: str) -> Optional[Callable[[str], object]]:
    if name in {"floor", "ceiling"}:
        return _parse_optional_float
    current = getattr(base, name)
    if isinstance(current, bool):
        return _parse_bool
    if isinstance(current, int):
        return int
    if isinstance(current, float):
        return float
    return None


def _apply_prefixed(values: Dict[str, str], prefix: str, base):
    """Override fields of the frozen dataclass ``base`` from ``prefix.<field>`` keys."""
    known = {f.name for f in fields(base)}
    overrides = {}
    for key in [k for k in values if k.startswith(prefix + ".")]:
        name = key[len(prefix) + 1 :]
        convert = _scalar_converter(base, name) if name in known else None
        if convert is None:
            raise ConfigurationError(f"Unknown configuration key: {key}")
        overrides[name] = _pop(values, key, convert, None)
    return replace(base, **overrides) if overrides else base


def _pop(values: Dict[str, str], key: str, convert: Callable[[str], object], default):
    if key not in values:
        return default
    raw = values.pop(key)
    try:
        return convert(raw)
    except ValueError as exc:
        if isinstance(exc, ConfigurationError):
            raise
        raise ConfigurationError(f"Invalid value for {key}: {raw!r}") from exc


def _reject_unknown(values: Dict[str, str]) -> None:
    if values:
        raise ConfigurationError(f"Unknown configuration keys: {sorted(values)}")


def _optional_path(raw: str) -> Optional[Path]:
    return Path(raw) if raw else None


def parse_heatwave_config(path: str | Path) -> HeatwaveConfig:
    values = read_key_values(path)
    defaults = HeatwaveConfig()

    secondary = _apply_prefixed(values, "secondary", defaults.secondary)
    precipitation = _apply_prefixed(values, "precipitation", secondary.precipitation)

    config = HeatwaveConfig(
        start_date=_pop(values, "start_date", _parse_date, defaults.start_date),
        end_date=_pop(values, "end_date", _parse_date, defaults.end_date),
        seed=_pop(values, "seed", int, defaults.seed),
        temperature=_apply_prefixed(values, "temperature", defaults.temperature),
        schedule=_apply_prefixed(values, "schedule", defaults.schedule),
        random_events=_pop(values, "random_events", _parse_bool, defaults.random_events),
        events=_pop(values, "events", parse_events, []),
        quantile=_pop(values, "quantile", float, defaults.quantile),
        min_run_length=_pop(values, "min_run_length", int, defaults.min_run_length),
        secondary=replace(secondary, precipitation=precipitation),
        output_dir=_pop(values, "output_dir", Path, defaults.output_dir),
        output_name=_pop(values, "output_name", str, defaults.output_name),
        delimiter=_pop(values, "delimiter", _parse_delimiter, defaults.delimiter),
    )
    _reject_unknown(values)
    config.validate()
    return config


def _parse_delimiter(raw: str) -> str:
    return "\t" if raw.lower() in {"tab", "\\t"} else raw


def parse_monthly_config(path: str | Path) -> MonthlyGridConfig:
    values = read_key_values(path)
    defaults = MonthlyGridConfig()
    config = MonthlyGridConfig(
        start_year=_pop(values, "start_year", int, defaults.start_year),
        end_year=_pop(values, "end_year", int, defaults.end_year),
        lat_min=_pop(values, "lat_min", float, defaults.lat_min),
        lat_max=_pop(values, "lat_max", float, defaults.lat_max),
        lon_min=_pop(values, "lon_min", float, defaults.lon_min),
        lon_max=_pop(values, "lon_max", float, defaults.lon_max),
        resolution=_pop(values, "resolution", float, defaults.resolution),
        seed=_pop(values, "seed", int, defaults.seed),
        temperature=_apply_prefixed(values, "temperature", defaults.temperature),
        precipitation=_apply_prefixed(values, "precipitation", defaults.precipitation),
        humidity=_apply_prefixed(values, "humidity", defaults.humidity),
        output_dir=_pop(values, "output_dir", Path, defaults.output_dir),
    )
    _reject_unknown(values)
    config.validate()
    return config


def parse_gmta_config(path: str | Path) -> GmtaConfig:
    values = read_key_values(path)
    if "netcdf_path" not in values:
        raise ConfigurationError("Missing required config keys: ['netcdf_path']")
    defaults = GmtaConfig()
    config = GmtaConfig(
        netcdf_path=Path(values.pop("netcdf_path")),
        variable=_pop(values, "variable", str, defaults.variable),
        lon_min=_pop(values, "lon_min", float, defaults.lon_min),
        lon_max=_pop(values, "lon_max", float, defaults.lon_max),
        lat_min=_pop(values, "lat_min", float, defaults.lat_min),
        lat_max=_pop(values, "lat_max", float, defaults.lat_max),
        start_year=_pop(values, "start_year", float, defaults.start_year),
        end_year=_pop(values, "end_year", float, defaults.end_year),
        output_dir=_pop(values, "output_dir", Path, defaults.output_dir),
        output_name=_pop(values, "output_name", str, defaults.output_name),
        save_subset=_pop(values, "save_subset", _parse_bool, defaults.save_subset),
    )
    _reject_unknown(values)
    config.validate()
    return config


def parse_drivers_config(path: str | Path) -> DriversConfig:
    values = read_key_values(path)
    defaults = DriversConfig()

    def _species(raw: str) -> Tuple[str, ...]:
        return tuple(item.strip() for item in raw.split(",") if item.strip())

    config = DriversConfig(
        mauna_loa_co2=_pop(values, "mauna_loa_co2", _optional_path, None),
        mauna_loa_ch4=_pop(values, "mauna_loa_ch4", _optional_path, None),
        mauna_loa_n2o=_pop(values, "mauna_loa_n2o", _optional_path, None),
        law_dome=_pop(values, "law_dome", _optional_path, None),
        law_dome_sheet=_pop(values, "law_dome_sheet", str, defaults.law_dome_sheet),
        ceds_dir=_pop(values, "ceds_dir", _optional_path, None),
        ceds_pattern=_pop(values, "ceds_pattern", str, defaults.ceds_pattern),
        ceds_species=_pop(values, "ceds_species", _species, defaults.ceds_species),
        gcb_path=_pop(values, "gcb_path", _optional_path, None),
        gcb_sheet=_pop(values, "gcb_sheet", str, defaults.gcb_sheet),
        gcb_skiprows=_pop(values, "gcb_skiprows", int, defaults.gcb_skiprows),
        output_dir=_pop(values, "output_dir", Path, defaults.output_dir),
    )
    _reject_unknown(values)
    config.validate()
    return config

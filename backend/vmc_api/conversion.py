"""Raw Modbus register -> physical value conversion.

The VMC controller exposes one 16-bit holding register per sensor. Values
are scaled against a full-scale count of 16709: temperature channels map
that span linearly onto -35..35 °C, every other channel is read as a
percentage of full scale and clamped to the sensor's configured range.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Sequence

RAW_FULL_SCALE = 16709
TEMPERATURE_MIN_C = -35.0
TEMPERATURE_MAX_C = 35.0
DECIMALS = 4

TEMPERATURE_KINDS = {"temperature", "ambient"}

@dataclass(frozen=True)
class SensorConfig:
    address: int
    name: str
    unit: str
    min: float
    max: float
    kind: str

    @property
    def capteur_id(self) -> int:
        return self.address + 1

@dataclass(frozen=True)
class SensorReading:
    capteur_id: int
    name: str
    unit: str
    raw: int
    value: float
    timestamp: datetime

SENSOR_CONFIG: List[SensorConfig] = [
    SensorConfig(0, "VOC", "%", 0, 100, "voc"),
    SensorConfig(1, "Airflow 1", "m3/h", 0, 100, "airflow"),
    SensorConfig(2, "Airflow 2", "m3/h", 0, 100, "airflow"),
    SensorConfig(3, "Airflow 3", "m3/h", 0, 100, "airflow"),
    SensorConfig(4, "Airflow 4", "m3/h", 0, 100, "airflow"),
    SensorConfig(5, "Temperature 1", "°C", -150, 150, "temperature"),
    SensorConfig(6, "Humidity 1", "%", 0, 100, "humidity"),
    SensorConfig(7, "Temperature 2", "°C", -150, 150, "temperature"),
    SensorConfig(8, "Humidity 2", "%", 0, 100, "humidity"),
    SensorConfig(9, "Temperature 3", "°C", -150, 150, "temperature"),
    SensorConfig(10, "Humidity 3", "%", 0, 100, "humidity"),
    SensorConfig(11, "Temperature 4", "°C", -150, 150, "temperature"),
    SensorConfig(12, "Humidity 4", "%", 0, 100, "humidity"),
    SensorConfig(13, "Ambient temperature", "°C", -150, 150, "ambient"),
    SensorConfig(14, "CO2", "ppm", 0, 3000, "co2"),
]

CAPTEUR_IDS = {c.capteur_id for c in SENSOR_CONFIG}

def to_signed16(raw: int) -> int:
    return raw - 65536 if raw > 32767 else raw

def convert_register(raw: int, config: SensorConfig) -> float:
    signed = to_signed16(raw)
    if config.kind in TEMPERATURE_KINDS:
        span = TEMPERATURE_MAX_C - TEMPERATURE_MIN_C
        value = TEMPERATURE_MIN_C + signed * span / RAW_FULL_SCALE
    else:
        value = (signed / RAW_FULL_SCALE) * 100
        value = max(config.min, min(config.max, value))
    return round(value, DECIMALS)

def convert_registers(
    values: Sequence[int],
    configs: Sequence[SensorConfig] = SENSOR_CONFIG,
    timestamp: datetime | None = None,
) -> List[SensorReading]:
    """Convert one register block, in config order.

    All readings of a block share one timestamp (now, UTC, unless given).
    """
    if len(values) != len(configs):
        raise ValueError(f"expected {len(configs)} registers, got {len(values)}")
    ts = timestamp or datetime.now(timezone.utc)
    return [
        SensorReading(
            capteur_id=cfg.capteur_id,
            name=cfg.name,
            unit=cfg.unit,
            raw=raw,
            value=convert_register(raw, cfg),
            timestamp=ts,
        )
        for cfg, raw in zip(configs, values)
    ]

"""DS18B20 one-wire temperature sensor reading.

The kernel w1 driver exposes each sensor as a two line ``w1_slave`` file::

    72 01 4b 46 7f ff 0e 10 57 : crc=57 YES
    72 01 4b 46 7f ff 0e 10 57 t=23125

The first line ends in ``YES`` when the CRC check passed; the second line
carries the temperature in millidegrees Celsius after ``t=``.
"""
from __future__ import annotations

from .errors import SensorReadFailure


def parse_sensor_blob(raw: str, path: str = "<sensor>") -> float:
    """Return the temperature in Celsius encoded in a ``w1_slave`` blob."""
    lines = raw.split("\n")
    if "YES" not in lines[0]:
        raise SensorReadFailure(SensorReadFailure.SENSOR_NOT_READY, path)
    try:
        line = lines[1]
        idx = line.index("t=")
        millidegrees = int(line[idx + 2:].strip())
    except (IndexError, ValueError) as e:
        raise SensorReadFailure(SensorReadFailure.MALFORMED_DATA, path, str(e)) from e
    return millidegrees / 1000.0


def read_temperature(path: str) -> float:
    """Read one sensor file.  No retries; the caller decides what to do."""
    try:
        with open(path, "r") as f:
            raw = f.read()
    except OSError as e:
        raise SensorReadFailure(SensorReadFailure.IO_ERROR, path, str(e)) from e
    return parse_sensor_blob(raw, path)

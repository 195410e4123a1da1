import pytest

from terrarium.errors import SensorReadFailure
from terrarium.sensors import parse_sensor_blob, read_temperature

from conftest import sensor_blob


def test_reads_millidegrees():
    assert parse_sensor_blob(sensor_blob(23500)) == 23.5


def test_negative_temperature():
    assert parse_sensor_blob(sensor_blob(-1250)) == -1.25


def test_not_ready_is_reported_not_raised_as_crash():
    with pytest.raises(SensorReadFailure) as exc:
        parse_sensor_blob(sensor_blob(23500, ready=False))
    assert exc.value.reason == SensorReadFailure.SENSOR_NOT_READY


@pytest.mark.parametrize("raw", [
    "crc=57 YES",
    "crc=57 YES\n72 01 4b 46 7f ff 0e 10 57\n",
    "crc=57 YES\n72 01 t=abc\n",
])
def test_malformed_blob(raw):
    with pytest.raises(SensorReadFailure) as exc:
        parse_sensor_blob(raw)
    assert exc.value.reason == SensorReadFailure.MALFORMED_DATA


def test_missing_file(tmp_path):
    path = str(tmp_path / "gone")
    with pytest.raises(SensorReadFailure) as exc:
        read_temperature(path)
    assert exc.value.reason == SensorReadFailure.IO_ERROR
    assert exc.value.path == path


def test_read_from_file(tmp_path):
    p = tmp_path / "w1_slave"
    p.write_text(sensor_blob(31062))
    assert read_temperature(str(p)) == pytest.approx(31.062)

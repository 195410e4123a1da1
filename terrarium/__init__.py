"""
terrarium

Controller for a Raspberry Pi driven terrarium.  It waters the enclosure
through a sprinkler relay on a daily schedule, switches and colours a
remote WLED light strip according to a daily light window and the inside
temperature, and reads two DS18B20 one-wire temperature sensors.

Commands arrive over MQTT and over a small Flask API; both paths share the
same dispatcher.  User adjustable settings (sprinkler times, sprinkle
length, light start/end) are persisted to a flat JSON file.
"""

__version__ = "1.0.0"

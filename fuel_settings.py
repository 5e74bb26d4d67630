import configparser
import logging
import math
import os
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.ini"
SECTION = "settings"

_TRUE_WORDS = ("true", "1", "yes", "on")
_FALSE_WORDS = ("false", "0", "no", "off")


@dataclass
class FuelSettings:
    green_flag_only: bool = False  # only log laps run under green in a race
    lap_offset: int = 0            # extra laps added to the race length
    fuel_multiplier: float = 1.0   # scales the average fuel per lap


def parse_bool(raw):
    value = raw.strip().lower()
    if value in _TRUE_WORDS:
        return True
    if value in _FALSE_WORDS:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def parse_lap_offset(raw):
    value = float(raw.strip())
    if not math.isfinite(value) or value != int(value):
        raise ValueError(f"not a whole number of laps: {raw!r}")
    return int(value)


def parse_fuel_multiplier(raw):
    value = float(raw.strip())
    if not math.isfinite(value) or value <= 0.0:
        raise ValueError(f"fuel multiplier must be positive: {raw!r}")
    return value


class SettingsManager:
    """Reads and writes the three user settings in an INI file ([settings] section)."""

    # key in file -> (attribute, parser)
    FIELDS = {
        'green_flag': ('green_flag_only', parse_bool),
        'lap_offset': ('lap_offset', parse_lap_offset),
        'fuel_mult': ('fuel_multiplier', parse_fuel_multiplier),
    }

    def __init__(self, filename=None):
        self.filename = filename or os.environ.get("IR_FUEL_CALC_CONFIG", DEFAULT_CONFIG_FILE)

    def load(self):
        settings = FuelSettings()
        if not os.path.exists(self.filename):
            logger.debug("No config at %s, using defaults", self.filename)
            return settings

        parser = configparser.ConfigParser()
        try:
            parser.read(self.filename, encoding='utf-8')
        except (configparser.Error, OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read config %s: %s", self.filename, e)
            return settings

        if not parser.has_section(SECTION):
            logger.warning("Config %s has no [%s] section, using defaults", self.filename, SECTION)
            return settings

        logger.debug("Reading config")
        section = parser[SECTION]
        for key, (attr, parse) in self.FIELDS.items():
            raw = section.get(key)
            if raw is None:
                continue
            try:
                setattr(settings, attr, parse(raw))
            except ValueError as e:
                # Bad field falls back to its default, the others still load
                logger.warning("Invalid %s in %s (%s), keeping default %r",
                               key, self.filename, e, getattr(settings, attr))
        return settings

    def save(self, settings):
        logger.debug("Saving config")
        parser = configparser.ConfigParser()
        parser[SECTION] = {
            'green_flag': str(settings.green_flag_only),
            'lap_offset': str(settings.lap_offset),
            'fuel_mult': repr(float(settings.fuel_multiplier)),
        }

        max_retries = 3
        for attempt in range(max_retries):
            try:
                with open(self.filename, mode='w', encoding='utf-8') as config_file:
                    parser.write(config_file)
                return True
            except PermissionError:
                if attempt < max_retries - 1:
                    logger.warning("Permission denied saving %s. Retrying in 1s... (%d/%d)",
                                   self.filename, attempt + 1, max_retries)
                    time.sleep(1)
                else:
                    logger.error("Could not save '%s'. Is it open in another program?", self.filename)
            except OSError as e:
                logger.error("Error saving config: %s", e)
                break
        return False

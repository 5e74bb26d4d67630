import os
import unittest
from unittest.mock import patch

from fuel_settings import FuelSettings, SettingsManager


class TestSettingsManager(unittest.TestCase):
    def setUp(self):
        self.filename = "test_config.ini"
        if os.path.exists(self.filename):
            os.remove(self.filename)
        self.manager = SettingsManager(self.filename)

    def tearDown(self):
        if os.path.exists(self.filename):
            os.remove(self.filename)

    def write(self, text):
        with open(self.filename, 'w', encoding='utf-8') as f:
            f.write(text)

    def test_defaults_without_file(self):
        settings = self.manager.load()
        self.assertEqual(settings, FuelSettings(green_flag_only=False, lap_offset=0, fuel_multiplier=1.0))

    def test_save_and_load(self):
        self.assertTrue(self.manager.save(FuelSettings(True, 2, 1.05)))

        # New instance, reload from file
        settings = SettingsManager(self.filename).load()
        self.assertTrue(settings.green_flag_only)
        self.assertEqual(settings.lap_offset, 2)
        self.assertAlmostEqual(settings.fuel_multiplier, 1.05)

    def test_reads_original_format(self):
        self.write("[settings]\ngreen_flag = True\nlap_offset = 1\nfuel_mult = 1.10\n")
        settings = self.manager.load()
        self.assertEqual(settings, FuelSettings(True, 1, 1.1))

    def test_bad_field_falls_back_alone(self):
        self.write("[settings]\ngreen_flag = maybe\nlap_offset = 3\nfuel_mult = abc\n")
        with self.assertLogs('fuel_settings', level='WARNING'):
            settings = self.manager.load()

        self.assertFalse(settings.green_flag_only)
        self.assertEqual(settings.lap_offset, 3)
        self.assertEqual(settings.fuel_multiplier, 1.0)

    def test_invalid_numbers(self):
        self.write("[settings]\ngreen_flag = yes\nlap_offset = 1.5\nfuel_mult = -2\n")
        settings = self.manager.load()

        self.assertTrue(settings.green_flag_only)
        self.assertEqual(settings.lap_offset, 0)
        self.assertEqual(settings.fuel_multiplier, 1.0)

    def test_whole_float_lap_offset(self):
        self.write("[settings]\nlap_offset = 2.0\n")
        self.assertEqual(self.manager.load().lap_offset, 2)

    def test_missing_section(self):
        self.write("[other]\ngreen_flag = True\n")
        self.assertEqual(self.manager.load(), FuelSettings())

    def test_unparseable_file(self):
        self.write("this is not an ini file\n")
        self.assertEqual(self.manager.load(), FuelSettings())

    def test_save_overwrites(self):
        self.write("[other]\nkey = value\n")
        self.manager.save(FuelSettings())

        with open(self.filename, encoding='utf-8') as f:
            content = f.read()
        self.assertNotIn("[other]", content)
        self.assertIn("[settings]", content)

    def test_save_retries_on_permission_error(self):
        with patch('fuel_settings.open', side_effect=PermissionError, create=True), \
                patch('fuel_settings.time.sleep') as sleep:
            self.assertFalse(self.manager.save(FuelSettings()))
        self.assertEqual(sleep.call_count, 2)

    def test_env_override(self):
        with patch.dict(os.environ, {"IR_FUEL_CALC_CONFIG": "elsewhere.ini"}):
            self.assertEqual(SettingsManager().filename, "elsewhere.ini")


if __name__ == '__main__':
    unittest.main()

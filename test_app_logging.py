import logging
import os
import subprocess
import sys
import unittest
from unittest.mock import patch

import app_logging


class TestSetupLogging(unittest.TestCase):
    def test_console_and_file_handlers(self):
        with patch('app_logging.logging.basicConfig') as basic_config, \
                patch('app_logging.logging.FileHandler') as file_handler:
            app_logging.setup_logging("test_fuel.log")

        file_handler.assert_called_once_with("test_fuel.log", encoding="utf-8")
        kwargs = basic_config.call_args.kwargs
        self.assertEqual(kwargs['level'], logging.DEBUG)
        self.assertEqual(len(kwargs['handlers']), 2)

    def test_level_from_environment(self):
        with patch.dict(os.environ, {"IR_FUEL_CALC_LOG_LEVEL": "warning"}), \
                patch('app_logging.logging.basicConfig') as basic_config, \
                patch('app_logging.logging.FileHandler'):
            app_logging.setup_logging()

        self.assertEqual(basic_config.call_args.kwargs['level'], logging.WARNING)

    def test_does_not_load_the_window(self):
        # The console monitor must run without a Tk display
        code = ("import sys, app_logging; "
                "sys.exit(1 if 'customtkinter' in sys.modules or 'ui_main' in sys.modules else 0)")
        here = os.path.dirname(os.path.abspath(__file__))
        result = subprocess.run([sys.executable, "-c", code], cwd=here)
        self.assertEqual(result.returncode, 0)


if __name__ == '__main__':
    unittest.main()

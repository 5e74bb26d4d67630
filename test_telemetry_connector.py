import unittest
from unittest.mock import MagicMock

import irsdk

from fuel_calculator import FuelCalculator, TelemetrySample
from telemetry_connector import IRacingConnector


def make_ir(values):
    ir = MagicMock()
    ir.startup.return_value = True
    ir.is_initialized = True
    ir.is_connected = True
    ir.__getitem__.side_effect = values.get
    return ir


class TestIRacingConnector(unittest.TestCase):
    def setUp(self):
        self.values = {
            'OnPitRoad': False,
            'SessionState': irsdk.SessionState.racing,
            'LapCompleted': 4,
            'SessionTimeRemain': 1800.5,
            'FuelLevel': 22.25,
            'LapLastLapTime': 95.1,
            'SessionFlags': irsdk.Flags.green,
            'DriverInfo': {'DriverCarFuelMaxLtr': 40.0, 'DriverCarMaxFuelPct': 0.95},
        }
        self.ir = make_ir(self.values)
        self.connector = IRacingConnector(self.ir)

    def test_read_sample(self):
        self.assertTrue(self.connector.connect())
        sample = self.connector.read_sample()

        self.assertEqual(sample, TelemetrySample(
            on_pit_road=False,
            session_state=irsdk.SessionState.racing,
            lap_completed=4,
            session_time_remaining=1800.5,
            fuel_level=22.25,
            last_lap_time=95.1,
            session_flags=irsdk.Flags.green,
        ))
        self.ir.freeze_var_buffer_latest.assert_called_once()
        self.ir.unfreeze_var_buffer_latest.assert_called_once()

    def test_missing_values_default_to_zero(self):
        self.values.clear()
        self.connector.connect()
        sample = self.connector.read_sample()
        self.assertEqual(sample, TelemetrySample())

    def test_not_connected(self):
        self.ir.startup.return_value = False
        calculator = MagicMock()

        self.assertIsNone(self.connector.dispatch(calculator))
        self.assertIsNone(self.connector.read_sample())
        self.assertEqual(self.connector.read_metadata(), (None, None))
        self.assertIsNotNone(self.connector.last_error)
        calculator.on_telemetry_sample.assert_not_called()

    def test_read_metadata(self):
        self.connector.connect()
        self.assertEqual(self.connector.read_metadata(), (40.0, 0.95))

        self.values['DriverInfo'] = None
        self.assertEqual(self.connector.read_metadata(), (None, None))

    def test_set_pit_fuel(self):
        self.connector.connect()
        self.assertTrue(self.connector.set_pit_fuel(17))
        self.ir.pit_command.assert_called_once_with(irsdk.PitCommandMode.fuel, 17)

    def test_set_pit_fuel_failure_is_logged(self):
        self.connector.connect()
        self.ir.pit_command.side_effect = RuntimeError("sim rejected command")

        with self.assertLogs('telemetry_connector', level='ERROR'):
            self.assertFalse(self.connector.set_pit_fuel(17))
        self.assertEqual(self.ir.pit_command.call_count, 1)

    def test_set_pit_fuel_not_connected(self):
        self.assertFalse(self.connector.set_pit_fuel(17))
        self.ir.pit_command.assert_not_called()

    def test_dispatch_delivers_events(self):
        calculator = MagicMock()

        sample = self.connector.dispatch(calculator)

        calculator.reset.assert_called_once()
        calculator.on_session_metadata.assert_called_once_with(40.0, 0.95)
        calculator.on_telemetry_sample.assert_called_once_with(sample)

        # Session info only when asked for again
        self.connector.dispatch(calculator)
        self.assertEqual(calculator.on_session_metadata.call_count, 1)
        self.assertEqual(calculator.on_telemetry_sample.call_count, 2)

        self.connector.request_metadata_refresh()
        self.connector.dispatch(calculator)
        self.assertEqual(calculator.on_session_metadata.call_count, 2)

    def test_dispatch_with_calculator(self):
        calculator = FuelCalculator(self.connector)
        self.connector.dispatch(calculator)

        self.assertAlmostEqual(calculator.state.capacity, 38.0)
        self.assertEqual(calculator.state.cursor.last_lap_completed, 4)
        self.assertFalse(self.connector.metadata_requested)

    def test_disconnect_detected(self):
        calculator = MagicMock()
        self.connector.dispatch(calculator)

        self.ir.is_connected = False
        self.assertIsNone(self.connector.dispatch(calculator))
        self.assertFalse(self.connector.connected)
        self.ir.shutdown.assert_called()

    def test_reconnect_resets_session(self):
        calculator = MagicMock()
        self.connector.dispatch(calculator)
        self.connector.close()

        self.connector.dispatch(calculator)
        self.assertEqual(calculator.reset.call_count, 2)
        self.assertEqual(calculator.on_session_metadata.call_count, 2)


if __name__ == '__main__':
    unittest.main()

import logging
import msvcrt
import time

from app_logging import setup_logging
from fuel_calculator import FuelCalculator
from fuel_settings import SettingsManager
from telemetry_connector import IRacingConnector

logger = logging.getLogger(__name__)


def print_status(status):
    print("=== iR Fuel Calculator ===")
    print(f"AutoFuel:            {'[ON]' if status['auto_fuel'] else '[OFF]'}")
    print(f"Laps recorded:       {status['laps_recorded']}")
    print(f"Fuel last lap:       {status['fuel_last_lap']:.2f}")
    print(f"Fuel per lap:        {status['fuel_per_lap']:.2f}")
    print(f"Estimated laps:      {status['estimated_laps']}")
    print(f"Estimated stops:     {status['estimated_stops']}")
    print(f"Max fuel:            {status['max_fuel']:.2f}")
    print(f"Total fuel required: {status['total_fuel_required']:.2f}")
    print(f"Fuel to add:         {status['fuel_to_add']}", flush=True)


def main():
    setup_logging()
    settings_manager = SettingsManager()
    connector = IRacingConnector()
    calculator = FuelCalculator(connector, settings_manager.load())

    print("Waiting for iRacing... Press 'a' to toggle AutoFuel, Ctrl+C to stop.", flush=True)
    last_laps = -1
    try:
        while True:
            # Check for key press
            if msvcrt.kbhit():
                key = msvcrt.getch()
                if key.lower() == b'a':
                    enabled = calculator.toggle_auto_fuel()
                    print(f"AutoFuel {'ON' if enabled else 'OFF'}", flush=True)

            sample = connector.dispatch(calculator)
            if sample is None:
                print("Waiting for data...", end="\r", flush=True)
            elif sample.lap_completed != last_laps:
                last_laps = sample.lap_completed
                print_status(calculator.get_status())

            time.sleep(0.1)
    except KeyboardInterrupt:
        print("\nStopped.")
    finally:
        settings_manager.save(calculator.settings)
        connector.close()


if __name__ == "__main__":
    main()

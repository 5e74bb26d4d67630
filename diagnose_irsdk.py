import time

import irsdk

FUEL_VARS = [
    "OnPitRoad", "SessionState", "SessionFlags", "LapCompleted",
    "LapLastLapTime", "SessionTimeRemain", "FuelLevel",
]


def diagnose():
    ir = irsdk.IRSDK()
    print("Attempting to connect to iRacing...")

    if not ir.startup():
        print("FAILED: iRacing SDK not available.")
        print("Possible causes:")
        print("1. iRacing is not running.")
        print("2. You are not in the car / session yet.")
        return

    print("SUCCESS: Connected to iRacing!")
    try:
        while ir.is_initialized and ir.is_connected:
            ir.freeze_var_buffer_latest()
            print("-" * 40)
            for name in FUEL_VARS:
                print(f"{name:<18} {ir[name]}")

            driver_info = ir['DriverInfo'] or {}
            print(f"{'DriverCarFuelMaxLtr':<18} {driver_info.get('DriverCarFuelMaxLtr')}")
            print(f"{'DriverCarMaxFuelPct':<18} {driver_info.get('DriverCarMaxFuelPct')}")
            ir.unfreeze_var_buffer_latest()
            time.sleep(1)
        print("\nWARNING: iRacing disconnected.")
    except KeyboardInterrupt:
        print("\nStopped.")
    finally:
        ir.shutdown()


if __name__ == "__main__":
    diagnose()

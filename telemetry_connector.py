import logging

import irsdk

from fuel_calculator import TelemetrySample

logger = logging.getLogger(__name__)


class IRacingConnector:
    """
    Data layer for the fuel calculator.
    Wraps the iRacing SDK: reads telemetry samples and session info, and
    sends the pit fuel command back to the sim.
    """
    def __init__(self, ir=None):
        self.ir = ir if ir is not None else irsdk.IRSDK()
        self.connected = False
        self.last_error = None

        self.metadata_requested = True
        self.session_changed = False

    def connect(self):
        """Attempts to attach to a running sim."""
        try:
            if self.ir.startup() and self.ir.is_initialized and self.ir.is_connected:
                self.connected = True
                self.last_error = None
                # Fresh connection means a fresh session
                self.metadata_requested = True
                self.session_changed = True
                logger.info("Connected to iRacing")
            else:
                self.connected = False
                self.last_error = "iRacing not running."
        except Exception as e:
            self.connected = False
            self.last_error = f"Connection Error: {e}"
            logger.error(self.last_error)
        return self.connected

    def check_connection(self):
        """Drops the connection once the sim goes away."""
        if self.connected and not (self.ir.is_initialized and self.ir.is_connected):
            logger.info("iRacing disconnected")
            self.close()
        return self.connected

    def read_sample(self):
        """
        Snapshot of the latest telemetry frame as a TelemetrySample.
        Returns None if not connected.
        """
        if not self.connected:
            return None

        ir = self.ir
        # Freeze so all values come from the same frame
        ir.freeze_var_buffer_latest()
        try:
            return TelemetrySample(
                on_pit_road=bool(ir['OnPitRoad']),
                session_state=int(ir['SessionState'] or 0),
                lap_completed=int(ir['LapCompleted'] or 0),
                session_time_remaining=float(ir['SessionTimeRemain'] or 0.0),
                fuel_level=float(ir['FuelLevel'] or 0.0),
                last_lap_time=float(ir['LapLastLapTime'] or 0.0),
                session_flags=int(ir['SessionFlags'] or 0),
            )
        finally:
            ir.unfreeze_var_buffer_latest()

    def read_metadata(self):
        """Raw (tank capacity, usable fraction) from DriverInfo, (None, None) if unavailable."""
        if not self.connected:
            return None, None

        driver_info = self.ir['DriverInfo']
        if not driver_info:
            return None, None
        return driver_info.get('DriverCarFuelMaxLtr'), driver_info.get('DriverCarMaxFuelPct')

    def request_metadata_refresh(self):
        self.metadata_requested = True

    def set_pit_fuel(self, amount):
        """Sets the pit stop fuel fill. Failures are logged, never retried."""
        if not self.connected:
            logger.error("Cannot set pit fuel (%d): not connected", amount)
            return False

        try:
            self.ir.pit_command(irsdk.PitCommandMode.fuel, int(amount))
            logger.info("Pit fuel set to %d", amount)
            return True
        except Exception as e:
            logger.error("Failed to set pit fuel (%d): %s", amount, e)
            return False

    def dispatch(self, calculator):
        """
        One polling tick: (re)connect, deliver session info if requested,
        then the telemetry sample. Returns the sample or None.
        """
        if not self.connected:
            if not self.connect():
                return None
        elif not self.check_connection():
            return None

        if self.session_changed:
            calculator.reset()
            self.session_changed = False

        sample = self.read_sample()

        if self.metadata_requested:
            self.metadata_requested = False
            tank_capacity, usable_fraction = self.read_metadata()
            calculator.on_session_metadata(tank_capacity, usable_fraction)

        if sample is not None:
            calculator.on_telemetry_sample(sample)
        return sample

    def close(self):
        try:
            self.ir.shutdown()
        except Exception as e:
            logger.debug("Error during shutdown: %s", e)
        self.connected = False

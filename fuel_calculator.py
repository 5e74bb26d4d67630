import logging
import math
import statistics
from dataclasses import dataclass, field, replace

import irsdk

from fuel_settings import FuelSettings

logger = logging.getLogger(__name__)

# Capacity below this is treated as "not known yet"
MIN_CAPACITY = 0.01


@dataclass(frozen=True)
class TelemetrySample:
    """One telemetry frame, reduced to the channels the calculator needs."""
    on_pit_road: bool = False
    session_state: int = 0
    lap_completed: int = 0
    session_time_remaining: float = 0.0
    fuel_level: float = 0.0
    last_lap_time: float = 0.0
    session_flags: int = 0


@dataclass(frozen=True)
class SampleCursor:
    # Start "in pits" so launching the tool while on track is not a pit entry
    on_pit_road: bool = True
    last_lap_completed: int = 0
    fuel_level: float = 0.0
    session_time_remaining: float = 0.0


@dataclass(frozen=True)
class LapHistory:
    """
    Accepted laps as two parallel sequences (lap_times[i] belongs to fuel_usages[i]).
    Every lap time entry is either a positive time or None. A lap time <= 0
    (first lap out of the pits, reset timer) is stored as None when the
    history is built, so both sequences stay aligned.
    """
    lap_times: tuple = ()
    fuel_usages: tuple = ()

    def __post_init__(self):
        if len(self.lap_times) != len(self.fuel_usages):
            raise ValueError("lap_times and fuel_usages must have the same length")
        lap_times = tuple(t if t is not None and t > 0.0 else None for t in self.lap_times)
        object.__setattr__(self, 'lap_times', lap_times)
        object.__setattr__(self, 'fuel_usages', tuple(self.fuel_usages))

    def append(self, lap_time, fuel_used):
        return LapHistory(self.lap_times + (lap_time,), self.fuel_usages + (fuel_used,))

    def timed_lap_times(self):
        return [t for t in self.lap_times if t is not None]

    def __len__(self):
        return len(self.fuel_usages)


@dataclass(frozen=True)
class Projection:
    average_lap_time: float = 0.0
    fuel_per_lap: float = 0.0
    fuel_last_lap: float = 0.0
    estimated_laps: int = 0
    total_fuel_required: float = 0.0
    estimated_stops: int = 0
    fuel_per_stop: float = 0.0
    fuel_to_add: int = 0


@dataclass(frozen=True)
class FuelState:
    capacity: float = 0.0
    cursor: SampleCursor = field(default_factory=SampleCursor)
    history: LapHistory = field(default_factory=LapHistory)
    projection: Projection = field(default_factory=Projection)

    @property
    def capacity_known(self):
        return self.capacity > MIN_CAPACITY


def filtered_mean(values):
    """
    Mean of the values within one sample standard deviation of the raw mean.
    Returns 0.0 for an empty sequence or when nothing survives the filter.
    """
    values = list(values)
    if not values:
        return 0.0

    avg = statistics.mean(values)
    # Single value: no spread, nothing to filter
    std_dev = statistics.stdev(values) if len(values) > 1 else 0.0

    low = avg - std_dev
    high = avg + std_dev
    kept = [v for v in values if low <= v <= high]

    if not kept:
        return 0.0
    return statistics.mean(kept)


def capacity_from_metadata(tank_capacity, usable_fraction):
    """Usable tank size, or None when either input is not a positive number."""
    try:
        tank = float(tank_capacity)
        fraction = float(usable_fraction)
    except (TypeError, ValueError):
        return None

    if not (math.isfinite(tank) and math.isfinite(fraction)):
        return None
    if tank <= 0.0 or fraction <= 0.0:
        return None
    return tank * fraction


def detect_lap_edge(cursor, sample):
    return sample.lap_completed > 0 and sample.lap_completed != cursor.last_lap_completed


def detect_pit_edge(cursor, sample):
    return bool(sample.on_pit_road) != cursor.on_pit_road


def is_pit_entry(cursor, sample):
    return detect_pit_edge(cursor, sample) and bool(sample.on_pit_road)


def is_green_flag_racing(sample):
    return (sample.session_state == irsdk.SessionState.racing
            and bool(sample.session_flags & irsdk.Flags.green))


def accepts_lap(sample, settings):
    if not settings.green_flag_only:
        return True
    return is_green_flag_racing(sample)


def stops_required(total_fuel, capacity):
    if capacity <= MIN_CAPACITY or total_fuel <= 0.0:
        return 0
    return math.ceil(total_fuel / capacity)


def fuel_to_add(fuel_per_stop, fuel_level):
    # Whole units; negative when the car already carries more than the stop needs
    return math.ceil(fuel_per_stop - fuel_level)


def pit_fill_amount(fuel_per_stop, fuel_level):
    """Fuel to request at the stop. The sim never gets a negative fill."""
    return max(0, fuel_to_add(fuel_per_stop, fuel_level))


def recompute_projection(history, fuel_last_lap, remaining_time, fuel_level, capacity, settings):
    average_lap_time = filtered_mean(history.timed_lap_times())
    fuel_per_lap = filtered_mean(history.fuel_usages)

    effective_fuel_per_lap = fuel_per_lap * settings.fuel_multiplier

    estimated_laps = 0
    if average_lap_time > 0.0 and remaining_time > 0.0:
        estimated_laps = math.ceil(remaining_time / average_lap_time)

    total_fuel_required = effective_fuel_per_lap * (estimated_laps + settings.lap_offset)
    estimated_stops = stops_required(total_fuel_required, capacity)

    fuel_per_stop = 0.0
    if estimated_stops > 0:
        fuel_per_stop = total_fuel_required / estimated_stops

    return Projection(
        average_lap_time=average_lap_time,
        fuel_per_lap=fuel_per_lap,
        fuel_last_lap=fuel_last_lap,
        estimated_laps=estimated_laps,
        total_fuel_required=total_fuel_required,
        estimated_stops=estimated_stops,
        fuel_per_stop=fuel_per_stop,
        # No stop planned: nothing to add
        fuel_to_add=fuel_to_add(fuel_per_stop, fuel_level) if estimated_stops > 0 else 0,
    )


def apply_lap_edge(state, sample, settings):
    """
    Returns the FuelState after a completed lap.
    Consumption only counts when the car is on track and the fuel level went down;
    unchanged fuel, refuelling or a telemetry reset still moves the cursor but
    records nothing.
    """
    cursor = replace(
        state.cursor,
        last_lap_completed=sample.lap_completed,
        session_time_remaining=sample.session_time_remaining,
    )
    history = state.history
    projection = state.projection

    if state.cursor.fuel_level > sample.fuel_level and not sample.on_pit_road:
        fuel_delta = state.cursor.fuel_level - sample.fuel_level
        if accepts_lap(sample, settings):
            history = history.append(sample.last_lap_time, fuel_delta)

        projection = recompute_projection(
            history,
            fuel_delta,
            sample.session_time_remaining,
            sample.fuel_level,
            state.capacity,
            settings,
        )

    cursor = replace(cursor, fuel_level=sample.fuel_level)
    return replace(state, cursor=cursor, history=history, projection=projection)


class FuelCalculator:
    """
    Fuel estimation state machine.
    Driven by session metadata and telemetry samples, talks back to the sim
    through a command sink (request_metadata_refresh / set_pit_fuel).
    """
    def __init__(self, sink, settings=None):
        self.sink = sink
        self.settings = settings if settings is not None else FuelSettings()
        self.state = FuelState()
        self.auto_fuel = False

    @property
    def projection(self):
        return self.state.projection

    def reset(self):
        """New session: forget capacity and laps, keep settings and auto-fuel."""
        logger.debug("Resetting fuel state")
        self.state = FuelState()

    def on_session_metadata(self, tank_capacity, usable_fraction):
        if self.state.capacity_known:
            return

        capacity = capacity_from_metadata(tank_capacity, usable_fraction)
        if capacity is None:
            logger.error("Error parsing max fuel: tank=%r, usable=%r", tank_capacity, usable_fraction)
            return

        logger.debug("Max fuel tank found to be: %s", tank_capacity)
        logger.debug("Max fuel percent found to be: %s", usable_fraction)
        self.state = replace(self.state, capacity=capacity)
        logger.debug("Max fuel is: %.2f", capacity)

    def on_telemetry_sample(self, sample):
        if not self.state.capacity_known:
            self.sink.request_metadata_refresh()

        if detect_lap_edge(self.state.cursor, sample):
            self.state = apply_lap_edge(self.state, sample, self.settings)
            self._log_lap(sample)

        if detect_pit_edge(self.state.cursor, sample):
            entering = is_pit_entry(self.state.cursor, sample)
            self.state = replace(
                self.state,
                cursor=replace(self.state.cursor, on_pit_road=bool(sample.on_pit_road)),
            )
            if entering:
                self._on_pit_entry(sample)

    def _on_pit_entry(self, sample):
        logger.debug("Entering pits")

        projection = self.state.projection
        if sample.session_state != irsdk.SessionState.racing:
            return None
        if (self.state.cursor.session_time_remaining <= 0.0
                or projection.average_lap_time <= 0.0
                or projection.fuel_per_lap <= 0.0):
            return None

        # Uses the projection from the last completed lap
        fuel_this_stop = pit_fill_amount(projection.fuel_per_stop, sample.fuel_level)
        logger.debug("\t- Adding %d litres of fuel", fuel_this_stop)

        if self.auto_fuel:
            logger.debug("\t- AutoFuel enabled.")
            self.sink.set_pit_fuel(fuel_this_stop)
        else:
            logger.debug("\t- AutoFuel disabled.")
        return fuel_this_stop

    def _log_lap(self, sample):
        p = self.state.projection
        logger.debug("Lap completed %d", sample.lap_completed)
        logger.debug("\t- Time: %.3f", sample.last_lap_time)
        logger.debug("\t- Fuel level: %.3f", sample.fuel_level)
        logger.debug("\t- Fuel delta: %.3f", p.fuel_last_lap)
        logger.debug("\t- Avg laptime: %.3f", p.average_lap_time)
        logger.debug("\t- Avg fuel per lap: %.3f", p.fuel_per_lap)
        logger.debug("\t- Laps remaining: %d", p.estimated_laps)
        logger.debug("\t- Total fuel required: %.2f", p.total_fuel_required)
        logger.debug("\t- Stops remaining: %d", p.estimated_stops)

    def toggle_auto_fuel(self):
        self.auto_fuel = not self.auto_fuel
        logger.debug("AutoFuel %s", "enabled" if self.auto_fuel else "disabled")
        return self.auto_fuel

    def auto_fuel_label(self):
        return "Disable AutoFuel" if self.auto_fuel else "Enable AutoFuel"

    def fuel_history(self):
        return list(self.state.history.fuel_usages)

    def get_status(self):
        p = self.state.projection
        return {
            'fuel_last_lap': p.fuel_last_lap,
            'estimated_laps': p.estimated_laps,
            'estimated_stops': p.estimated_stops,
            'max_fuel': self.state.capacity,
            'fuel_per_lap': p.fuel_per_lap,
            'total_fuel_required': p.total_fuel_required,
            'fuel_to_add': p.fuel_to_add,
            'auto_fuel': self.auto_fuel,
            'laps_recorded': len(self.state.history),
        }

import logging
import os

LOG_FILE = "ir_fuel_calc.log"


def setup_logging(log_file=LOG_FILE):
    """Console plus log file. Level from IR_FUEL_CALC_LOG_LEVEL, DEBUG by default."""
    level = os.environ.get("IR_FUEL_CALC_LOG_LEVEL", "DEBUG").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.DEBUG),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(), logging.FileHandler(log_file, encoding="utf-8")],
    )

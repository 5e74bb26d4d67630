import logging

from app_logging import setup_logging
from fuel_calculator import FuelCalculator
from fuel_settings import SettingsManager
from telemetry_connector import IRacingConnector
from ui_main import MainWindow

logger = logging.getLogger(__name__)


def main():
    setup_logging()
    logger.info("Starting iR Fuel Calculator...")

    # 1. Settings
    settings_manager = SettingsManager()
    settings = settings_manager.load()

    # 2. Data Layer
    connector = IRacingConnector()

    # 3. Logic Layer
    calculator = FuelCalculator(connector, settings)

    # 4. Presentation Layer (drives the update loop, saves settings on close)
    app = MainWindow(connector, calculator, settings_manager)

    try:
        app.mainloop()
    except KeyboardInterrupt:
        logger.info("Stopping...")
        settings_manager.save(calculator.settings)
    finally:
        connector.close()
        logger.info("Shutdown complete.")


if __name__ == "__main__":
    main()

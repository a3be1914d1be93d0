# trackmix/app.py
import logging
import sys

from PySide6.QtWidgets import QApplication

from .main_window import MainWindow
from .utils.log import setup_logging
from .utils.settings import load_settings


def main() -> int:
    settings = load_settings()
    log_path = setup_logging(settings)
    logging.getLogger(__name__).info("Starting trackmix (log: %s)", log_path)

    app = QApplication(sys.argv)
    app.setApplicationName("trackmix")
    w = MainWindow(settings)
    w.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())

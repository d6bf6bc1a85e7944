"""Desktop entry point."""

from __future__ import annotations

import sys

from PySide6.QtWidgets import QApplication, QMessageBox

from signflow.log import configure_logging
from signflow.settings import SettingsError, load_settings
from signflow.ui.main_window import MainWindow


def main() -> int:
    app = QApplication(sys.argv)
    try:
        settings = load_settings(sys.argv[1] if len(sys.argv) > 1 else None)
    except SettingsError as exc:
        QMessageBox.critical(None, "Invalid Settings", str(exc))
        return 1

    configure_logging(settings.log_level)
    window = MainWindow(settings)
    window.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())

"""Application entrypoint."""

from __future__ import annotations

import logging
import os
import sys
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from acquisition import AcquisitionManager
from config import JsonConfigStore
from interfaces import ConfigStore
from models import ViewState
from recorder import default_source_muted
from state import ViewStateStore
from window import ClassifierWindow, privacy_settings_url

try:
    from PySide6.QtCore import QObject, Qt, QUrl, Signal
    from PySide6.QtGui import QDesktopServices
    from PySide6.QtWidgets import QApplication, QMessageBox
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

try:
    from PySide6.QtCore import QMicrophonePermission
except Exception:  # pragma: no cover - Qt < 6.5 has no permission API
    QMicrophonePermission = None  # type: ignore

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "SOUND_CLASSIFIER_LOG_LEVEL"


class UIBridge(QObject):
    state_signal = Signal(object)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.config_store: ConfigStore = JsonConfigStore()
        self.store = ViewStateStore()
        self.window = ClassifierWindow()
        self.ui = UIBridge()
        self.ui.state_signal.connect(self.window.render)
        self.manager = AcquisitionManager(self.store, is_microphone_muted=default_source_muted)
        self._paused = False
        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="acquisition")

        self._unsubscribe = self.store.subscribe(self._on_state)
        self.app.applicationStateChanged.connect(self._on_application_state)
        self.app.aboutToQuit.connect(self.quit)

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_state(self, state: ViewState) -> None:
        self.ui.state_signal.emit(state)

    # ------------------------------------------------------------------
    # Permission
    # ------------------------------------------------------------------

    def _check_permission(self) -> None:
        if QMicrophonePermission is None:
            self._on_permission(True)
            return
        permission = QMicrophonePermission()
        status = self.app.checkPermission(permission)
        if status == Qt.PermissionStatus.Undetermined:
            logger.info("Requesting microphone permission")
            self.app.requestPermission(permission, self.window, self._on_permission_reply)
            return
        self._on_permission(status == Qt.PermissionStatus.Granted)

    def _on_permission_reply(self, permission: object) -> None:
        self._on_permission(self.app.checkPermission(permission) == Qt.PermissionStatus.Granted)

    def _on_permission(self, granted: bool) -> None:
        config = self.config_store.load_classifier_config()
        self._in_background(lambda: self.manager.on_permission_result(granted, config))
        if not granted:
            self._show_permission_denied()

    def _show_permission_denied(self) -> None:
        box = QMessageBox(self.window)
        box.setIcon(QMessageBox.Icon.Information)
        box.setWindowTitle("Microphone permission denied")
        box.setText("To use the app, grant microphone access in the system settings.")
        url = privacy_settings_url(sys.platform)
        open_button = None
        if url is not None:
            open_button = box.addButton("Open Settings", QMessageBox.ButtonRole.AcceptRole)
        box.addButton(QMessageBox.StandardButton.Cancel)
        box.exec()
        if open_button is not None and box.clickedButton() is open_button:
            QDesktopServices.openUrl(QUrl(url))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _on_application_state(self, state: Qt.ApplicationState) -> None:
        if state in (Qt.ApplicationState.ApplicationSuspended, Qt.ApplicationState.ApplicationHidden):
            if not self._paused:
                self._paused = True
                self._in_background(self.manager.pause)
        elif state == Qt.ApplicationState.ApplicationActive and self._paused:
            self._paused = False
            config = self.config_store.load_classifier_config()
            self._in_background(lambda: self.manager.resume(config))

    def _in_background(self, fn: Callable[[], object]) -> None:
        # One worker keeps acquire, pause and resume in submission order, off the Qt thread.
        self._worker.submit(fn)

    def run(self) -> int:
        self.window.show()
        self._check_permission()
        return self.app.exec()

    def quit(self) -> None:
        self._unsubscribe()
        self._worker.shutdown(wait=False, cancel_futures=True)
        self.manager.release()


def main() -> int:
    logging.basicConfig(
        level=os.getenv(LOG_LEVEL_ENV, "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())

"""Window rendering the current classification view state."""

from __future__ import annotations

from typing import Optional

from models import Error, Initial, Loading, RecordingSpecs, Success, ViewState

try:
    from PySide6.QtCore import Qt
    from PySide6.QtWidgets import QLabel, QVBoxLayout, QWidget
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QLabel = object  # type: ignore
    QWidget = object  # type: ignore
    QVBoxLayout = object  # type: ignore

_OUTPUT_STYLE = "font-size: 16px;"
_ERROR_STYLE = "color: #D32F2F; font-size: 16px;"

_PRIVACY_SETTINGS_URLS = {
    "darwin": "x-apple.systempreferences:com.apple.preference.security?Privacy_Microphone",
    "win32": "ms-settings:privacy-microphone",
}


def privacy_settings_url(platform: str) -> Optional[str]:
    """System settings page for microphone access, if the platform has one."""
    return _PRIVACY_SETTINGS_URLS.get(platform)


def describe_state(state: ViewState) -> str:
    """Text shown in the results area for ``state``."""
    if isinstance(state, Initial):
        return "Waiting for microphone access..."
    if isinstance(state, Loading):
        return "Loading..."
    if isinstance(state, Success):
        return state.text
    if isinstance(state, Error):
        return f"Error: {state.message}"
    return ""


class ClassifierWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowTitle("Sound Classifier")
        self.setMinimumWidth(420)

        self._specs_label = QLabel("")
        header = QLabel("Classification Results:")
        header.setStyleSheet("font-size: 18px; font-weight: bold;")
        self._output_label = QLabel("")
        self._output_label.setWordWrap(True)
        self._output_label.setAlignment(Qt.AlignTop | Qt.AlignLeft)
        self._output_label.setStyleSheet(_OUTPUT_STYLE)

        layout = QVBoxLayout()
        layout.setContentsMargins(16, 16, 16, 16)
        layout.addWidget(self._specs_label)
        layout.addSpacing(16)
        layout.addWidget(header)
        layout.addSpacing(8)
        layout.addWidget(self._output_label, 1)
        self.setLayout(layout)

    def render(self, state: ViewState) -> None:
        # Recording specs stay visible while results come in underneath.
        if isinstance(state, RecordingSpecs):
            self._specs_label.setText(state.describe())
            return
        style = _ERROR_STYLE if isinstance(state, Error) else _OUTPUT_STYLE
        self._output_label.setStyleSheet(style)
        self._output_label.setText(describe_state(state))

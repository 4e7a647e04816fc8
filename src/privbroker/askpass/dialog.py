import importlib
import subprocess

from ..locales import LocaleVariant
from .provider import DialogUnavailable

# AppleScript receives the strings as arguments so nothing needs escaping
_OSASCRIPT_LINES = (
    'on run argv',
    'set r to display dialog (item 2 of argv) with title (item 1 of argv) '
    'default answer "" with hidden answer with icon caution '
    'buttons {item 4 of argv, item 3 of argv} '
    'default button (item 3 of argv) cancel button (item 4 of argv)',
    'return text returned of r',
    'end run',
)

# osascript reports "User canceled. (-128)" when the cancel button is used
_OSASCRIPT_CANCELLED = '(-128)'


def _load_qt():
    try:
        qt_widgets = importlib.import_module("PyQt6.QtWidgets")
        qt_core = importlib.import_module("PyQt6.QtCore")
    except ImportError as e:
        raise DialogUnavailable(f"PyQt6 is not installed: {e}") from e
    return qt_widgets, qt_core


def qt_prompt(variant: LocaleVariant) -> str | None:
    """Modal PyQt6 password dialog. Returns the text, or None on cancel."""
    qt_widgets, qt_core = _load_qt()
    QApplication = qt_widgets.QApplication
    QDialog = qt_widgets.QDialog
    QInputDialog = qt_widgets.QInputDialog
    QLineEdit = qt_widgets.QLineEdit
    Qt = qt_core.Qt

    app = QApplication.instance() or QApplication(['privbroker-askpass'])

    dialog = QInputDialog()
    dialog.setWindowTitle(variant.title)
    dialog.setLabelText(variant.message)
    dialog.setInputMode(QInputDialog.InputMode.TextInput)
    dialog.setTextEchoMode(QLineEdit.EchoMode.Password)
    dialog.setOkButtonText(variant.ok_label)
    dialog.setCancelButtonText(variant.cancel_label)
    dialog.setWindowModality(Qt.WindowModality.ApplicationModal)
    dialog.setWindowFlag(Qt.WindowType.WindowStaysOnTopHint, True)
    dialog.setMinimumWidth(400)

    accepted = dialog.exec() == QDialog.DialogCode.Accepted.value
    value = dialog.textValue() if accepted else None
    dialog.deleteLater()
    app.processEvents()
    return value


def osascript_prompt(variant: LocaleVariant) -> str | None:
    """macOS ``display dialog`` with a hidden answer. Returns None on cancel."""
    argv = ['osascript']
    for line in _OSASCRIPT_LINES:
        argv += ['-e', line]
    argv += [variant.title, variant.message, variant.ok_label, variant.cancel_label]
    try:
        proc = subprocess.run(argv, stdin=subprocess.DEVNULL, capture_output=True, text=True)
    except OSError as e:
        raise DialogUnavailable(f"osascript could not be started: {e}") from e

    if proc.returncode != 0:
        if _OSASCRIPT_CANCELLED in proc.stderr:
            return None
        raise DialogUnavailable(f"osascript failed with status {proc.returncode}")
    # osascript terminates its result with one newline; the rest is the user's
    out = proc.stdout
    return out[:-1] if out.endswith('\n') else out

"""
Persistent settings: the stored API key and the latest wizard snapshot.

One file per key under SCRIPT_MATCH_HOME. Writes go to a temp file first and are
moved into place, so a crash never leaves half a snapshot behind.
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Callable

from config import SCRIPT_MATCH_HOME
from wizard_state import WizardState

STATE_KEY = "scriptMatchState"
CREDENTIAL_KEY = "gemini_api_key"


def _log(msg: str) -> None:
    print(f"[STORE] {msg}")


class SettingsStore:
    """Key-value store backed by a directory.

    Subscribers registered with subscribe() are called with True/False whenever
    the credential is set or cleared.
    """

    def __init__(self, home: Path | str | None = None):
        self.home = Path(home) if home is not None else SCRIPT_MATCH_HOME
        self._subscribers: list[Callable[[bool], None]] = []

    # ---- raw keys ----

    def _path(self, key: str) -> Path:
        return self.home / key

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.home.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.home, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, self._path(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    # ---- wizard snapshot ----

    def load_state(self) -> WizardState | None:
        """
        Return the saved snapshot, or None when there is none or it is unusable.

        Never raises for bad data: a corrupt snapshot is reported as absent.
        """
        try:
            raw = self.get(STATE_KEY)
        except (OSError, UnicodeDecodeError) as e:
            _log(f"[WARNING] Could not read saved state: {e}")
            return None
        if raw is None:
            return None
        try:
            return WizardState.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError, RecursionError) as e:
            _log(f"[WARNING] Discarding malformed saved state: {type(e).__name__}: {e}")
            return None

    def save_state(self, state: WizardState) -> None:
        self.set(STATE_KEY, json.dumps(state.to_dict(), ensure_ascii=False, indent=2))

    def clear_state(self) -> None:
        self.remove(STATE_KEY)

    # ---- credential ----

    def get_credential(self) -> str | None:
        value = self.get(CREDENTIAL_KEY)
        if value is None or not value.strip():
            return None
        return value.strip()

    def has_credential(self) -> bool:
        return self.get_credential() is not None

    def set_credential(self, value: str) -> None:
        value = (value or "").strip()
        if not value:
            raise ValueError("API key must not be empty")
        self.set(CREDENTIAL_KEY, value)
        try:
            os.chmod(self._path(CREDENTIAL_KEY), 0o600)
        except OSError as e:
            _log(f"[WARNING] Could not restrict key file permissions: {e}")
        _log("API key saved")
        self._notify(True)

    def clear_credential(self) -> None:
        self.remove(CREDENTIAL_KEY)
        _log("API key cleared")
        self._notify(False)

    def subscribe(self, callback: Callable[[bool], None]) -> Callable[[], None]:
        """Register a credential-change callback. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, present: bool) -> None:
        for callback in list(self._subscribers):
            callback(present)

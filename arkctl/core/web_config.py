"""KEY=VALUE settings file with typed accessors.

Missing, blank, and malformed values fall back to the caller's default, so a
half-edited ``arkctl.env`` never stops the service from booting.
"""

from pathlib import Path

_QUOTES = {"'", '"'}
_BOOL_WORDS = {
    "1": True, "true": True, "yes": True, "on": True,
    "0": False, "false": False, "no": False, "off": False,
}


def parse_settings(text):
    """Parse dotenv-style text into a dict; a repeated key keeps its last value."""
    values = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in _QUOTES:
            value = value[1:-1]
        values[key] = value
    return values


class WebConfig:
    """Settings read once from ``config_path``; relative paths resolve from ``base_dir``."""

    def __init__(self, config_path, base_dir):
        self.config_path = Path(config_path)
        self.base_dir = Path(base_dir)
        try:
            text = self.config_path.read_text(encoding="utf-8")
        except OSError:
            text = ""
        self.values = parse_settings(text)

    def _raw(self, name):
        value = (self.values.get(name) or "").strip()
        return value or None

    def _number(self, name, default, cast, minimum):
        raw = self._raw(name)
        if raw is None:
            return default
        try:
            parsed = cast(raw)
        except ValueError:
            return default
        if minimum is not None:
            parsed = max(parsed, minimum)
        return parsed

    def get_str(self, name, default):
        raw = self._raw(name)
        return default if raw is None else raw

    def get_int(self, name, default, minimum=None):
        return self._number(name, default, int, minimum)

    def get_float(self, name, default, minimum=None):
        return self._number(name, default, float, minimum)

    def get_bool(self, name, default):
        """Read an on/off word; anything unrecognized keeps ``default``."""
        raw = self._raw(name)
        if raw is None:
            return default
        return _BOOL_WORDS.get(raw.lower(), default)

    def get_list(self, name, default=()):
        """Read a comma-separated list. An explicitly blank value means empty."""
        if name not in self.values:
            return list(default)
        return [item.strip() for item in self.values[name].split(",") if item.strip()]

    def get_path(self, name, default):
        raw = self._raw(name)
        if raw is None:
            return Path(default)
        candidate = Path(raw)
        return candidate if candidate.is_absolute() else self.base_dir / candidate

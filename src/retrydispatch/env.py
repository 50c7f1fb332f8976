"""Named configuration lookups with type coercion and defaults.

:class:`EnvSource` resolves a key against, in priority order:

1. an explicit *overrides* mapping (handy in tests and for programmatic
   configuration);
2. the process environment;
3. a ``.env`` file parsed with :func:`dotenv.dotenv_values` (missing files
   are simply ignored).

Typed getters never raise on malformed values: they log the problem and
return the supplied default, so a bad ``MAX_ATTEMPTS=three`` cannot take
the client down at construction time.
"""

from __future__ import annotations

import math
import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import dotenv_values

from retrydispatch.observability import get_logger

log = get_logger("retrydispatch.env")

_TRUE_VALUES: frozenset[str] = frozenset({"true", "1", "yes", "on"})
_FALSE_VALUES: frozenset[str] = frozenset({"false", "0", "no", "off"})


def _split_list_literal(raw: str) -> list[str]:
    """Split ``"429,503"``, ``"[429; 503]"`` or ``"('429', '503')"`` into items."""
    s = raw.strip()
    if (s.startswith("[") and s.endswith("]")) or (s.startswith("(") and s.endswith(")")):
        s = s[1:-1]

    items: list[str] = []
    for part in s.replace(";", ",").split(","):
        item = part.strip()
        if len(item) >= 2 and item[0] == item[-1] and item[0] in ("'", '"'):
            item = item[1:-1].strip()
        if item:
            items.append(item)
    return items


class EnvSource:
    """Layered key/value configuration source.

    Parameters
    ----------
    env_file:
        Path of the dotenv file to read, or ``None`` to skip it entirely.
        Defaults to ``.env`` in the current working directory.
    overrides:
        Values that take precedence over everything else.
    environ:
        Mapping used in place of :data:`os.environ`.
    """

    def __init__(
        self,
        env_file: str | Path | None = ".env",
        *,
        overrides: Mapping[str, str] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._overrides = dict(overrides or {})
        self._environ = os.environ if environ is None else environ
        self._dotenv: dict[str, str] = {}
        if env_file is not None:
            path = Path(env_file)
            if path.is_file():
                self._dotenv = {
                    k: v for k, v in dotenv_values(path).items() if v is not None
                }
                log.debug(
                    ".env loaded",
                    extra={"extra_fields": {"path": str(path.resolve()), "entries": len(self._dotenv)}},
                )

    def get(self, key: str) -> str | None:
        """Return the raw value for *key*, or ``None`` when it is not set anywhere."""
        for layer in (self._overrides, self._environ, self._dotenv):
            value = layer.get(key)
            if value is not None:
                return value
        return None

    def get_str(self, key: str, default: str | None = None) -> str | None:
        """Like :meth:`get`, but blank values also fall back to *default*."""
        value = self.get(key)
        if value is None or not value.strip():
            return default
        return value

    def get_bool(self, key: str, default: bool) -> bool:
        value = self.get_str(key)
        if value is None:
            return default
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        self._report_invalid(key, value, "bool")
        return default

    def get_int(self, key: str, default: int) -> int:
        value = self.get_str(key)
        if value is None:
            return default
        try:
            return int(value.strip())
        except ValueError:
            self._report_invalid(key, value, "int")
            return default

    def get_float(self, key: str, default: float) -> float:
        """Parse a finite float; ``nan`` and ``inf`` count as malformed."""
        value = self.get_str(key)
        if value is None:
            return default
        try:
            result = float(value.strip())
        except ValueError:
            result = math.nan
        if not math.isfinite(result):
            self._report_invalid(key, value, "float")
            return default
        return result

    def get_int_set(self, key: str, default: frozenset[int]) -> frozenset[int]:
        """Parse a list of integers; unconvertible items are skipped.

        Returns *default* when the key is unset, blank, or no item could be
        converted.
        """
        value = self.get_str(key)
        if value is None:
            return default

        result: set[int] = set()
        for item in _split_list_literal(value):
            try:
                result.add(int(item))
            except ValueError:
                log.warning(
                    "Unable to convert list item",
                    extra={"extra_fields": {"key": key, "item": item, "type": "int"}},
                )
        return frozenset(result) if result else default

    @staticmethod
    def _report_invalid(key: str, value: str, type_name: str) -> None:
        log.error(
            "Unable to parse configuration value",
            extra={"extra_fields": {"key": key, "value": value, "type": type_name}},
        )

"""Validation helpers for service settings."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo


def parse_string_list(value: str | list[str]) -> list[str]:
    """Parse a non-empty string list from an environment variable or config value.

    Accepts a list of strings, a JSON array string ('["a","b"]'),
    or a comma-separated string ('a,b'). Raises ValueError otherwise.
    """
    if isinstance(value, list):
        result = value
    else:
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                parsed = json.loads(stripped)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON array: {e}") from e
            if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
                raise ValueError("JSON value must be an array of strings")
            result = parsed
        else:
            result = [item.strip() for item in stripped.split(",") if item.strip()]

    if not result:
        raise ValueError("String list value must not be empty")
    return result


_STRING_LIST_FIELDS = {"cors_origins"}


class StringListEnvSettingsSource(EnvSettingsSource):
    """Env settings source that hands string-list fields to validators unparsed.

    pydantic-settings JSON-decodes list fields from env vars before validators
    run, which rejects the comma-separated form. parse_string_list handles both.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in _STRING_LIST_FIELDS and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)

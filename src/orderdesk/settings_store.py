"""Store settings storage for orderdesk."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from .errors import (
    InvalidSchemaVersionError,
    SettingsExistsError,
    SettingsNotFoundError,
    ValidationError,
)
from .models import StoreSettings, _utc_now

SCHEMA_VERSION = 1

# Settings fields that may be cleared with None
NULLABLE_FIELDS = frozenset({"confirmation_template"})

# Can be overridden via ORDERDESK_DATA_DIR environment variable
_default_data_dir = Path(__file__).parent.parent.parent / "data"
SETTINGS_FILE = "settings.json"


def get_data_dir() -> Path:
    """Resolve the data directory, honoring ORDERDESK_DATA_DIR."""
    return Path(os.environ.get("ORDERDESK_DATA_DIR", _default_data_dir))


def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    """Write JSON to path via a temp file and rename (atomic on POSIX)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.stem}_", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")  # trailing newline
        os.replace(temp_path, path)
    except Exception:
        # Clean up temp file on failure (ignore errors if already removed)
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


class SettingsStore:
    """Manages reading and writing the store's checkout settings."""

    def __init__(self, config_dir: Path | None = None):
        """
        Initialize SettingsStore.

        Args:
            config_dir: Override data directory (for testing).
        """
        self.config_dir = Path(config_dir) if config_dir else get_data_dir()
        self.config_path = self.config_dir / SETTINGS_FILE

    def exists(self) -> bool:
        return self.config_path.exists()

    def load(self) -> StoreSettings:
        """
        Load settings from disk.

        Raises:
            SettingsNotFoundError: If settings don't exist.
            InvalidSchemaVersionError: If schema version is unsupported.
        """
        if not self.exists():
            raise SettingsNotFoundError(str(self.config_path))

        with open(self.config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        version = data.get("schema_version", 0)
        if version != SCHEMA_VERSION:
            raise InvalidSchemaVersionError(version, SCHEMA_VERSION)

        return StoreSettings.from_dict(data["settings"])

    def load_or_default(self) -> StoreSettings:
        """Load settings, falling back to defaults when not initialized."""
        if not self.exists():
            return StoreSettings.create_default()
        return self.load()

    def save(self, settings: StoreSettings) -> None:
        settings.updated_at = _utc_now()
        write_json_atomic(
            self.config_path,
            {"schema_version": SCHEMA_VERSION, "settings": settings.to_dict()},
        )

    def init(self, settings: StoreSettings | None = None, force: bool = False) -> StoreSettings:
        """
        Write initial settings.

        Args:
            settings: Settings to write (defaults to StoreSettings.create_default()).
            force: If True, overwrite existing settings.

        Raises:
            SettingsExistsError: If settings exist and force=False.
        """
        if self.exists() and not force:
            raise SettingsExistsError(str(self.config_path))

        settings = settings or StoreSettings.create_default()
        self.save(settings)
        return settings

    def update(self, **changes: Any) -> StoreSettings:
        """
        Apply field changes to the stored settings.

        Raises:
            ValidationError: If a field name is unknown, or a required field
                is set to None.
        """
        settings = self.load()
        for key, value in changes.items():
            if key in ("created_at", "updated_at") or not hasattr(settings, key):
                raise ValidationError("unknown settings field", field=key)
            if value is None and key not in NULLABLE_FIELDS:
                raise ValidationError("must not be null", field=key)
            setattr(settings, key, value)
        self.save(settings)
        return settings

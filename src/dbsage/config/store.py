"""JSON configuration store for named connections.

The store persists ``{"connections": {name: config}, "current": name|null}``
to a single user-scoped file. Loading never aborts: a missing file yields an
empty store and malformed entries are skipped with a warning. Saving writes
a temporary file in the same directory and renames it into place.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..core.exceptions import ConfigurationError, DBSageException, ErrorCodes
from ..logging import get_logger
from .models import ConnectionConfig

logger = get_logger(__name__)

CONFIG_FILENAME = "connections.json"
HOME_ENV_VAR = "DBSAGE_HOME"


def default_config_dir() -> Path:
    """Return ``$DBSAGE_HOME`` or ``~/.dbsage``."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".dbsage"


def default_config_path() -> Path:
    return default_config_dir() / CONFIG_FILENAME


class ConfigurationStore:
    """Persist connection configurations and the current-connection pointer.

    Example:
        >>> store = ConfigurationStore(tmp_path / "connections.json")
        >>> store.save([config], current=config.name)
        >>> configs, current = store.load()
    """

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self.path = Path(path).expanduser() if path else default_config_path()

    def load(self) -> Tuple[List[ConnectionConfig], Optional[str]]:
        """Load saved configurations.

        Returns:
            Tuple of (configs in file order, persisted current name or None)
        """
        if not self.path.exists():
            logger.debug("Configuration file not found", path=str(self.path))
            return [], None

        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable configuration file", path=str(self.path), error=str(e))
            return [], None

        if not isinstance(document, dict):
            logger.warning("Ignoring malformed configuration document", path=str(self.path))
            return [], None

        raw_connections = document.get("connections") or {}
        if not isinstance(raw_connections, dict):
            logger.warning("Ignoring malformed connections section", path=str(self.path))
            raw_connections = {}

        configs: List[ConnectionConfig] = []
        for name, entry in raw_connections.items():
            if not isinstance(entry, dict):
                logger.warning("Skipping malformed connection entry", connection=name)
                continue
            data: Dict[str, Any] = dict(entry)
            data.setdefault("name", name)
            try:
                configs.append(ConnectionConfig.from_dict(data))
            except DBSageException as e:
                logger.warning("Skipping invalid connection entry", connection=name, error=str(e))

        current = document.get("current")
        if not isinstance(current, str) or current not in {c.name for c in configs}:
            current = None

        logger.info("Configuration loaded", path=str(self.path), connections=len(configs))
        return configs, current

    def save(self, configs: List[ConnectionConfig], current: Optional[str] = None) -> None:
        """Atomically write ``configs`` and ``current`` to disk.

        Raises:
            ConfigurationError: If the file cannot be written
        """
        document = {
            "connections": {c.name: c.to_dict(mask_secrets=False) for c in configs},
            "current": current,
        }

        try:
            self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(document, handle, indent=2)
                    handle.write("\n")
                try:
                    os.chmod(tmp_name, 0o600)
                except OSError:
                    logger.debug("Could not restrict configuration file permissions", path=tmp_name)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise ConfigurationError(
                f"Failed to save configuration: {e}",
                code=ErrorCodes.CONFIG_SAVE_FAILED,
                context={"path": str(self.path)},
                cause=e,
            ) from e

        logger.debug("Configuration saved", path=str(self.path), connections=len(configs))

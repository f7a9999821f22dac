# App config file: load the live config object, write a new one atomically.
# Created: 2026-02-21

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pocketauth.config import get_config_path
from pocketauth.errors import ConfigFileError

logger = logging.getLogger(__name__)


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load the current config object. A missing file is an empty config."""
    path = path or get_config_path()
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        raise ConfigFileError(f"Failed to read config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigFileError(f"Config {path} is not a JSON object")
    return data


def write_config_file(cfg: dict[str, Any], path: Path | None = None) -> None:
    """Atomically replace the config file with *cfg*.

    The new content is written to a temp file in the same directory and
    swapped in with ``os.replace`` so readers never see a partial file.
    """
    path = path or get_config_path()
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(cfg, fh, indent=2)
            fh.write("\n")
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, path)
        tmp_name = None
    except (OSError, TypeError, ValueError) as e:
        raise ConfigFileError(f"Failed to write config {path}: {e}") from e
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
    logger.debug("Wrote config to %s", path)

"""Load the manufacturer-specific channel catalog.

The catalog is a JSON object keyed by parameter key::

    {
      "boost-actual": {
        "command": "22D906",
        "decode": {"type": "u16be", "byte_index": 3, "scale": 0.1, "offset": 0}
      }
    }

Manufacturer channels are optional: a missing or unreadable file, or one
whose top level is not an object, yields an empty catalog.  An entry
that fails validation (unknown ``type``, negative ``byte_index``, ...)
is dropped on its own and the remaining channels still load.  Problems
are logged, never raised.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

import structlog
from pydantic import TypeAdapter, ValidationError

from ecu_datalogger.schemas import ChannelConfig

logger = structlog.get_logger(__name__)

ChannelCatalog = Dict[str, ChannelConfig]

_TOP_LEVEL_ADAPTER: TypeAdapter[Dict[str, Any]] = TypeAdapter(Dict[str, Any])


def load_channel_catalog(path: str | Path) -> ChannelCatalog:
    """Read and validate the catalog at *path*."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as fh:
            raw = json.load(fh)
    except FileNotFoundError:
        logger.debug("channel_catalog_missing", path=str(path))
        return {}
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("channel_catalog_unreadable", path=str(path), error=str(exc))
        return {}

    try:
        entries = _TOP_LEVEL_ADAPTER.validate_python(raw)
    except ValidationError as exc:
        logger.warning(
            "channel_catalog_invalid",
            path=str(path),
            errors=exc.error_count(),
        )
        return {}

    catalog: ChannelCatalog = {}
    for key, entry in entries.items():
        try:
            catalog[key] = ChannelConfig.model_validate(entry)
        except ValidationError as exc:
            logger.warning(
                "channel_entry_skipped",
                path=str(path),
                key=key,
                errors=exc.error_count(),
            )

    logger.info("channel_catalog_loaded", path=str(path), channels=len(catalog))
    return catalog


def select_channels(
    catalog: ChannelCatalog, keys: Iterable[str]
) -> List[Tuple[str, ChannelConfig]]:
    """Return ``(key, channel)`` pairs for requested keys in the catalog.

    Order follows *keys*; lookup is exact.
    """
    return [(key, catalog[key]) for key in keys if key in catalog]

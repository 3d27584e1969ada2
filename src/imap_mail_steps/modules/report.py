"""Output writer for step results: JSON items plus binary files."""

import json
import logging
import re
import sys
from pathlib import Path

from .context import BinaryData

logger = logging.getLogger(__name__)

_RE_UNSAFE_FILENAME = re.compile(r"[^\w.@+-]+")


def _safe_filename(name):
    cleaned = _RE_UNSAFE_FILENAME.sub("_", name or "").strip("._")
    return cleaned or "file"


def _unique_path(out_dir, file_name):
    path = out_dir / _safe_filename(file_name)
    counter = 1
    while path.exists():
        path = out_dir / f"{path.stem}_{counter}{path.suffix}"
        counter += 1
    return path


def _write_binary(out_dir, binary_data):
    """Write *binary_data* under *out_dir* and return its JSON description."""
    out_dir.mkdir(parents=True, exist_ok=True)
    path = _unique_path(out_dir, binary_data.file_name)
    with open(path, "wb") as f:
        f.write(binary_data.content())
    logger.debug("Wrote %s (%d bytes)", path, binary_data.file_size)
    return {
        "fileName": binary_data.file_name,
        "mimeType": binary_data.mime_type,
        "fileSize": binary_data.file_size,
        "path": str(path),
    }


def serialize_items(items, output_dir):
    """Replace :class:`BinaryData` in *items* by files written to *output_dir*."""
    out_dir = Path(output_dir)
    serialized = []
    for item in items:
        entry = dict(item)
        binary = item.get("binary")
        if binary:
            entry["binary"] = {
                name: _write_binary(out_dir, data) if isinstance(data, BinaryData) else data
                for name, data in binary.items()
            }
        serialized.append(entry)
    return serialized


def write_outputs(items, output_dir, output_path=None):
    """Write step output items as formatted JSON (UTF-8) to *output_path* or stdout.

    Binary data is stored as separate files in *output_dir*.
    """
    serialized = serialize_items(items, output_dir)
    text = json.dumps(serialized, ensure_ascii=False, indent=2, default=str)
    if output_path:
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
            f.write("\n")
        logger.info("Output: %s (%d items)", path, len(serialized))
    else:
        sys.stdout.write(text + "\n")

import json
import tempfile
from pathlib import Path
from typing import Any


def write_json_atomic(path: Path, data: Any) -> None:
    """Write data as JSON next to path, then rename over it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(data, indent=2, sort_keys=True)
    with tempfile.NamedTemporaryFile("w", dir=str(path.parent), delete=False, encoding="utf-8") as tmp:
        tmp.write(text + "\n")
        tmp_path = Path(tmp.name)
    tmp_path.replace(path)


def read_json_object(path: Path) -> dict[str, Any] | None:
    """
    Return the JSON object stored at path, or None if the file is missing or
    empty.

    Raises:
        OSError     the file exists but cannot be read
        ValueError  the content is not a JSON object
    """
    if not path.exists():
        return None
    raw = path.read_text(encoding="utf-8").strip()
    if not raw:
        return None
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object in {path}, got {type(data).__name__}")
    return data

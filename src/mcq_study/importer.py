"""Reading question-set files from disk, with a cache in the files collection."""
import json
import logging
from pathlib import Path
from typing import Any

import yaml

from mcq_study.errors import MalformedInputError
from mcq_study.hierarchy import extract_questions

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"
QUESTION_SUFFIXES = (".json", ".yaml", ".yml")


def read_question_file(file_path: str) -> Any:
    """Decode a question file. JSON and YAML are supported."""
    path = Path(file_path)
    suffix = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedInputError(path.name, f"not UTF-8 text: {exc.reason}") from exc
    try:
        if suffix in (".yaml", ".yml"):
            return yaml.safe_load(text)
        return json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise MalformedInputError(path.name, f"cannot decode: {exc}") from exc


def discover_files(directory: str) -> list[str]:
    """List question files in ``directory``, honouring manifest.json when present."""
    root = Path(directory)
    manifest = root / MANIFEST_NAME
    if manifest.exists():
        names = json.loads(manifest.read_text(encoding="utf-8"))
        if not isinstance(names, list):
            raise MalformedInputError(MANIFEST_NAME, "expected a list of filenames")
        return [str(root / name) for name in names]
    return sorted(
        str(p) for p in root.iterdir()
        if p.suffix.lower() in QUESTION_SUFFIXES and p.name != MANIFEST_NAME
    )


def load_payload(files_store, file_path: str) -> tuple[str, Any]:
    """Return (filename, payload), reading the cache before the disk.

    The cache entry is reused only while it came from the same path and the
    file's modification time is unchanged. A payload read from disk is only
    cached once its top-level shape checks out, so a broken file is never
    served from the cache later.
    """
    path = Path(file_path)
    filename = path.name
    source = str(path.resolve())
    cached = files_store.get(filename)
    try:
        mtime_ns = path.stat().st_mtime_ns
    except FileNotFoundError:
        if cached is None:
            raise
        logger.info("%s is missing on disk, using cached copy", filename)
        return filename, cached["data"]
    if cached is not None and cached.get("source") == source and cached.get("mtime_ns") == mtime_ns:
        logger.debug("Using cached copy of %s", filename)
        return filename, cached["data"]
    if cached is not None:
        logger.info("Cached copy of %s is stale, re-reading %s", filename, source)
    payload = read_question_file(file_path)
    extract_questions(filename, payload)
    files_store.put({"filename": filename, "source": source, "mtime_ns": mtime_ns, "data": payload})
    return filename, payload

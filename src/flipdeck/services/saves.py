from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path

from jsonschema import Draft202012Validator

from flipdeck.engine.serialize import SnapshotFormatError, snapshot_from_dict, snapshot_to_dict
from flipdeck.engine.snapshot import Snapshot

log = logging.getLogger(__name__)

SAVE_SUFFIX = ".json"
_NAME_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")


class SaveError(RuntimeError):
    pass


def _load_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise SaveError(f"Missing save file: {path}") from e
    except json.JSONDecodeError as e:
        raise SaveError(f"Invalid JSON in {path}: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise SaveError(f"Could not read {path}: {e}") from e


def validate_json(instance: object, schema: object, *, context: str) -> None:
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(instance), key=lambda e: [str(p) for p in e.path])
    if errors:
        lines = [f"Schema validation failed for {context}:"]
        for err in errors[:10]:
            loc = "/".join(str(p) for p in err.absolute_path)
            lines.append(f"- {loc}: {err.message}")
        raise SaveError("\n".join(lines))


class SaveService:
    """Named snapshot files under a single saves directory.

    A load either returns a fully validated snapshot or raises SaveError;
    callers never see a half-parsed state.
    """

    def __init__(self, saves_dir: Path, schema_dir: Path) -> None:
        self._dir = saves_dir
        self._schema_path = schema_dir / "save.schema.json"
        self._schema: object | None = None

    def _schema_obj(self) -> object:
        if self._schema is None:
            self._schema = _load_json(self._schema_path)
        return self._schema

    def path_for(self, name: str) -> Path:
        if not _NAME_RE.match(name):
            raise SaveError(f"Invalid save name: {name!r}")
        return self._dir / f"{name}{SAVE_SUFFIX}"

    def exists(self, name: str) -> bool:
        return self.path_for(name).exists()

    def list_saves(self) -> list[str]:
        if not self._dir.exists():
            return []
        return sorted(p.stem for p in self._dir.glob(f"*{SAVE_SUFFIX}") if p.is_file())

    def save(self, name: str, snap: Snapshot) -> Path:
        path = self.path_for(name)
        data = snapshot_to_dict(snap)
        validate_json(data, self._schema_obj(), context=path.name)
        tmp = path.with_name(path.name + ".tmp")
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise SaveError(f"Could not write {path}: {e}") from e
        log.info("Saved game to %s", path)
        return path

    def load(self, name: str) -> Snapshot:
        path = self.path_for(name)
        raw = _load_json(path)
        validate_json(raw, self._schema_obj(), context=path.name)
        try:
            snap = snapshot_from_dict(raw)
        except SnapshotFormatError as e:
            raise SaveError(f"Inconsistent save {path.name}: {e}") from e
        log.info("Loaded game from %s", path)
        return snap

    def delete(self, name: str) -> None:
        path = self.path_for(name)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise SaveError(f"Missing save file: {path}") from e

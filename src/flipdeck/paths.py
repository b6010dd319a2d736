from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Paths:
    repo_root: Path
    data_dir: Path
    schema_dir: Path
    userdata_dir: Path
    saves_dir: Path


def get_paths() -> Paths:
    # src/flipdeck/paths.py -> parents: [flipdeck, src, repo_root]
    package_dir = Path(__file__).resolve().parent
    repo_root = package_dir.parents[1]
    data_dir = package_dir / "data"
    schema_dir = data_dir / "schemas"
    userdata_dir = Path(os.environ.get("FLIPDECK_USERDATA", repo_root / "userdata"))
    saves_dir = userdata_dir / "saves"
    return Paths(
        repo_root=repo_root,
        data_dir=data_dir,
        schema_dir=schema_dir,
        userdata_dir=userdata_dir,
        saves_dir=saves_dir,
    )

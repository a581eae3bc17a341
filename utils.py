"""
utils.py

Filesystem and logging helpers shared by the runner and the CLI: atomic JSON
writes, JSON reads, a source fingerprint for artifact records, UTC timestamps
and the console logger setup.
"""

from typing import Any, Dict, Optional
from pathlib import Path
import json
import tempfile
import os
import hashlib
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


def write_json_atomic(path: str, data: Any, indent: int = 2) -> None:
    """
    Write JSON to a temp file in the target directory and rename it into place,
    so readers never see a half-written artifact.
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=p.name, suffix=".tmp", dir=str(p.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=indent, sort_keys=True, ensure_ascii=False)
            fh.write("\n")
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, str(p))
    finally:
        if os.path.exists(tmp):
            try:
                os.remove(tmp)
            except OSError as exc:
                logger.warning("could not remove temp file %s: %s", tmp, exc)


def read_json(path: str) -> Optional[Dict]:
    p = Path(path)
    if not p.exists():
        return None
    with p.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def source_fingerprint(source: str, truncate: int = 16) -> str:
    """
    sha256 of the circuit source with line endings normalised; identifies which
    circuit a proof record belongs to.
    """
    text = source.replace("\r\n", "\n").strip()
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:truncate]


def timestamp_iso() -> str:
    """
    Current UTC time as ISO-8601, seconds precision.
    """
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def setup_basic_logger(name: str = "circuitscript", level: int = logging.INFO) -> logging.Logger:
    """
    Attach a StreamHandler with a compact formatter to `name` (the root logger
    for ""). Calling it again only updates the level.
    """
    log = logging.getLogger(name)
    log.setLevel(level)
    if log.handlers:
        return log
    ch = logging.StreamHandler()
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    ch.setFormatter(fmt)
    log.addHandler(ch)
    return log


# demo block
if __name__ == "__main__":
    write_json_atomic("tmp_demo/test.json", {"circuit": "squares", "constraints": 1})
    print("read:", read_json("tmp_demo/test.json"))
    print("fp:", source_fingerprint("([y], [x]) => x * x == y"))
    print("ts:", timestamp_iso())
    log = setup_basic_logger("demo", level=logging.DEBUG)
    log.info("demo logger ready")

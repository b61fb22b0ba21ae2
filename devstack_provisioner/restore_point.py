from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RestorePoint:
    """Network service order captured before the reorder mutates it."""

    services: List[str]
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {"services": list(self.services), "created_at": self.created_at}


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def save_restore_point(path: str, point: RestorePoint) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    fmt = _detect_format(p)
    tmp = p.with_name(p.name + ".tmp")
    if fmt in {"yaml", "yml"}:
        try:
            import yaml  # type: ignore
        except Exception as e:  # pragma: no cover
            raise RuntimeError(
                "YAML restore point requested but PyYAML is not available. "
                "Use a .json restore point path."
            ) from e
        tmp.write_text(yaml.safe_dump(point.to_dict(), sort_keys=False), encoding="utf-8")
    else:
        tmp.write_text(json.dumps(point.to_dict(), indent=2, sort_keys=True) + "\n", encoding="utf-8")
    # The snapshot must be complete on disk before anything is mutated.
    tmp.replace(p)
    logger.info("Saved network restore point %s (%d services)", p, len(point.services))


def load_restore_point(path: str) -> Optional[RestorePoint]:
    p = Path(path)
    if not p.exists():
        return None

    fmt = _detect_format(p)
    if fmt in {"yaml", "yml"}:
        try:
            import yaml  # type: ignore
        except Exception as e:  # pragma: no cover
            raise RuntimeError("YAML restore point found but PyYAML is not available.") from e
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    else:
        data = json.loads(p.read_text(encoding="utf-8"))

    if not isinstance(data, dict) or not isinstance(data.get("services"), list):
        raise ValueError(f"Restore point {p} is malformed")

    return RestorePoint(services=[str(s) for s in data["services"]], created_at=str(data.get("created_at", "")))


def remove_restore_point(path: str) -> bool:
    p = Path(path)
    if not p.exists():
        return False
    p.unlink()
    logger.info("Removed network restore point %s", p)
    return True

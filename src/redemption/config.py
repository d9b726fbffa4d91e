"""Redemption parameters — loaded from a JSON artifact under config/.

The parameter file is the single source for the unit size, the reserved
low-ID band, the default sale window and the contract's own address.
An alternate file can be selected with REDEMPTION_CONFIG, read from the
environment or a .env file at the project root.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv


ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = ROOT / "config" / "redemption_params.json"
ENV_FILE = ROOT / ".env"

_REQUIRED_KEYS = (
    "unit_decimals",
    "reserved_id_floor",
    "default_duration_seconds",
    "contract_address",
)


@dataclass(frozen=True)
class RedemptionConfig:
    """Validated redemption parameters."""
    unit_decimals: int = 18
    reserved_id_floor: int = 100
    default_duration_seconds: int = 30 * 24 * 60 * 60
    contract_address: str = "redemption"

    @property
    def unit(self) -> int:
        """One whole unit of the fund, in base units."""
        return 10 ** self.unit_decimals

    def validate(self) -> List[str]:
        """Check parameter invariants. Returns errors (empty = OK)."""
        errors: List[str] = []
        if not isinstance(self.unit_decimals, int) or not 0 <= self.unit_decimals <= 36:
            errors.append(f"unit_decimals must be an integer in [0, 36], got {self.unit_decimals}")
        if not isinstance(self.reserved_id_floor, int) or self.reserved_id_floor < 0:
            errors.append(f"reserved_id_floor must be a non-negative integer, got {self.reserved_id_floor}")
        if not isinstance(self.default_duration_seconds, int) or self.default_duration_seconds <= 0:
            errors.append(
                f"default_duration_seconds must be a positive integer, got {self.default_duration_seconds}"
            )
        if not self.contract_address:
            errors.append("contract_address must be a non-empty string")
        return errors

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RedemptionConfig":
        missing = [key for key in _REQUIRED_KEYS if key not in data]
        if missing:
            raise ValueError(f"Missing redemption parameters: {', '.join(missing)}")
        config = cls(
            unit_decimals=data["unit_decimals"],
            reserved_id_floor=data["reserved_id_floor"],
            default_duration_seconds=data["default_duration_seconds"],
            contract_address=data["contract_address"],
        )
        errors = config.validate()
        if errors:
            raise ValueError("; ".join(errors))
        return config

    @classmethod
    def from_file(cls, path: Path) -> "RedemptionConfig":
        """Load and validate parameters from a JSON file."""
        with path.open("r", encoding="utf-8") as handle:
            return cls.from_dict(json.load(handle))

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "RedemptionConfig":
        """Load parameters from REDEMPTION_CONFIG, or the bundled default file."""
        load_dotenv(env_file or ENV_FILE)
        path = os.getenv("REDEMPTION_CONFIG")
        return cls.from_file(Path(path) if path else DEFAULT_CONFIG_PATH)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unit_decimals": self.unit_decimals,
            "reserved_id_floor": self.reserved_id_floor,
            "default_duration_seconds": self.default_duration_seconds,
            "contract_address": self.contract_address,
        }

"""Lender tables and subsidized-program tiers loaded from versioned JSON."""
from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from habitasim.models import IncomeBracketRule, LenderProfile

DATA_DIR = Path(__file__).resolve().parent / "data"
LENDERS_FILE = "lenders.json"
PROGRAMS_FILE = "programs.json"


def _read_json(path: Path):
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


@lru_cache()
def _cached_tiers(data_dir: str) -> Dict[str, Tuple[IncomeBracketRule, ...]]:
    path = Path(data_dir) / PROGRAMS_FILE
    if not path.exists():
        return {}
    raw = _read_json(path)
    return {
        name: tuple(IncomeBracketRule.model_validate(t) for t in program.get("tiers", []))
        for name, program in raw.get("programs", {}).items()
    }


@lru_cache()
def _cached_lenders(data_dir: str) -> Dict[str, LenderProfile]:
    raw = _read_json(Path(data_dir) / LENDERS_FILE)
    programs = _cached_tiers(data_dir)
    lenders: Dict[str, LenderProfile] = {}
    for entry in raw.get("lenders", []):
        program = entry.get("subsidized_program")
        if program and "subsidized_program_tiers" not in entry:
            if program not in programs:
                raise ValueError(f"Lender {entry.get('id')!r} references unknown program {program!r}")
            entry = {**entry, "subsidized_program_tiers": [t.model_dump() for t in programs[program]]}
        profile = LenderProfile.model_validate(entry)
        lenders[profile.id] = profile
    return lenders


def load_program_tiers(data_dir: str = str(DATA_DIR)) -> Dict[str, List[IncomeBracketRule]]:
    """Subsidized program tiers keyed by program name.

    Files are parsed once per directory; each call gets its own containers.
    """
    return {name: list(tiers) for name, tiers in _cached_tiers(data_dir).items()}


def load_lenders(data_dir: str = str(DATA_DIR)) -> Dict[str, LenderProfile]:
    """Load every configured lender, resolving program tiers by name.

    A lender entry that names a ``subsidized_program`` unknown to the programs
    file is a configuration error.  Profiles are frozen; the returned dict is a
    fresh copy, so callers may add or drop entries freely.
    """
    return dict(_cached_lenders(data_dir))


def get_lender(lender_id: str, data_dir: Optional[str] = None) -> Optional[LenderProfile]:
    return _cached_lenders(str(DATA_DIR) if data_dir is None else data_dir).get(lender_id)

# quran_audio/reciters.py
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

from colorama import Fore, Style
from pydantic import ValidationError

from .models import Reciter

DATABASE_FILENAME = Path(__file__).parent / "database" / "reciters.json"


class ReciterCatalog:
    """Read-only reciter reference data, looked up by id or by name."""

    def __init__(self, reciters: List[Reciter]):
        self._by_id: Dict[int, Reciter] = {r.id: r for r in reciters}

    @classmethod
    def load(cls, db_path=DATABASE_FILENAME) -> "ReciterCatalog":
        """Load the catalog from a JSON list of reciters. Returns an empty catalog on error."""
        try:
            with open(db_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return cls([Reciter(**entry) for entry in data["reciters"]])
        except FileNotFoundError:
            print(f"{Fore.RED}Error: Reciter database not found at {db_path}{Style.RESET_ALL}", file=sys.stderr)
        except (json.JSONDecodeError, KeyError, TypeError, ValidationError) as e:
            print(f"{Fore.RED}Error: Failed to parse reciter database ({db_path}): {e}{Style.RESET_ALL}", file=sys.stderr)
        return cls([])

    def __len__(self):
        return len(self._by_id)

    def all(self) -> List[Reciter]:
        return sorted(self._by_id.values(), key=lambda r: r.id)

    def resolve(self, reciter_id) -> Optional[Reciter]:
        try:
            return self._by_id.get(int(reciter_id))
        except (TypeError, ValueError):
            return None

    def find_by_name(self, name: str) -> Optional[Reciter]:
        if not name:
            return None
        wanted = name.strip().lower()
        for reciter in self._by_id.values():
            if reciter.name.lower() == wanted:
                return reciter
        return None

    def resolve_preference(self, value) -> Optional[Reciter]:
        """The active reciter preference may hold an id or a reciter name."""
        if value is None or value == "":
            return None
        if isinstance(value, str) and not value.strip().isdigit():
            return self.find_by_name(value)
        return self.resolve(value)

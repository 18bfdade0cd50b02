"""JSON persistence of calibration sessions (sources, measurements, peaks)."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

from fepcal.core.errors import InvalidInput
from fepcal.data.measurements import Measurement


SESSION_SCHEMA = "fepcal.session.v1"


@dataclass
class Session:
    """All calibration measurements of one efficiency calibration."""

    measurements: List[Measurement] = field(default_factory=list)
    name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'schema': SESSION_SCHEMA,
            'name': self.name,
            'measurements': [m.to_dict() for m in self.measurements],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Session':
        """Create Session from dictionary."""
        if not isinstance(data, dict):
            raise InvalidInput("Session file must contain a JSON object")
        schema = data.get('schema', SESSION_SCHEMA)
        if schema != SESSION_SCHEMA:
            raise InvalidInput(f"Unsupported session schema: {schema}")
        measurements = data.get('measurements', [])
        if not isinstance(measurements, list):
            raise InvalidInput("Session measurements must be a list")
        return cls(
            measurements=[Measurement.from_dict(m) for m in measurements],
            name=data.get('name', ''),
        )

    def save(self, filepath: Union[str, Path]) -> None:
        """Save session to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, filepath: Union[str, Path]) -> 'Session':
        """Load session from JSON file."""
        with open(filepath, 'r') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise InvalidInput(f"Session file {filepath} is not valid JSON: {exc}") from exc
        return cls.from_dict(data)

"""JSON export functionality.

Writes the stored registry to a portable JSON file and reads it back.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..db.sqlite import Database, get_db
from ..errors import LendingError
from ..registry.manager import LendingRegistry
from ..registry.schemas import RegistrySnapshot


@dataclass
class JSONExportResult:
    """Result of a JSON export or import operation."""

    success: bool
    file_path: Optional[Path] = None
    items_exported: int = 0
    borrowers_exported: int = 0
    loans_exported: int = 0
    error: Optional[str] = None


class JSONExporter:
    """Exports the registry stored in the database to JSON format."""

    def __init__(self, db: Optional[Database] = None):
        """Initialize exporter.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    def export_snapshot(self, output_path: Path, pretty: bool = True) -> JSONExportResult:
        """Export the stored registry to a JSON file.

        Args:
            output_path: Path for output file
            pretty: Pretty-print JSON output

        Returns:
            JSONExportResult with success status
        """
        snapshot = self.db.load_state()
        if snapshot is None:
            return JSONExportResult(success=False, error="No registry has been saved yet")

        try:
            text = self.export_to_string(snapshot, pretty=pretty)
            output_path.write_text(text, encoding="utf-8")
        except OSError as e:
            return JSONExportResult(success=False, error=str(e))

        return JSONExportResult(
            success=True,
            file_path=output_path,
            items_exported=len(snapshot.items),
            borrowers_exported=len(snapshot.borrowers),
            loans_exported=len(snapshot.loans),
        )

    def export_to_string(self, snapshot: RegistrySnapshot, pretty: bool = True) -> str:
        """Serialize a snapshot, stamped with the export time."""
        data = snapshot.model_dump(mode="json")
        data["exported_at"] = datetime.now().isoformat()
        if pretty:
            return json.dumps(data, indent=2, ensure_ascii=False)
        return json.dumps(data, ensure_ascii=False)

    def import_snapshot(self, input_path: Path) -> JSONExportResult:
        """Replace the stored registry with the content of a JSON file.

        The file is rebuilt into a registry and verified before anything
        is written to the database.
        """
        try:
            # Unknown keys such as exported_at are ignored
            snapshot = RegistrySnapshot.model_validate_json(input_path.read_text(encoding="utf-8"))
            LendingRegistry.from_snapshot(snapshot)
        except (OSError, ValidationError, LendingError) as e:
            return JSONExportResult(success=False, error=str(e))

        self.db.save_state(snapshot)
        return JSONExportResult(
            success=True,
            file_path=input_path,
            items_exported=len(snapshot.items),
            borrowers_exported=len(snapshot.borrowers),
            loans_exported=len(snapshot.loans),
        )

"""Domain models for the transformer test sheet.

Snapshots are frozen dataclasses; see project.py for the stored document
mapping and row_id.py for row identity.
"""

from .project import (
    HeaderInfo,
    InsulationRow,
    Project,
    ResistanceSettings,
    TapRowData,
    TgDeltaRow,
    new_project,
)
from .row_id import RowIdGenerator

__all__ = [
    # Aggregate
    "Project",
    "new_project",
    # Sections
    "HeaderInfo",
    "ResistanceSettings",
    # Rows
    "TapRowData",
    "TgDeltaRow",
    "InsulationRow",
    # Identity
    "RowIdGenerator",
]

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from .mapper import ExportModel

"""Spreadsheet renderer for the export model (openpyxl engine via pandas)."""

logger = logging.getLogger(__name__)


class ExportError(Exception):
    pass


def write_workbook(model: ExportModel, directory: Path) -> Path:
    """Write one sheet per ExportSheet into ``directory/Ensayo_<serial>.xlsx``.

    Raises:
        ExportError: If the directory cannot be created or the file cannot be written
    """
    try:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / model.filename("xlsx")
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for sheet in model.sheets:
                df = pd.DataFrame(sheet.as_rows(), dtype=object)
                df.to_excel(writer, sheet_name=sheet.title, header=False, index=False)
    except OSError as e:
        raise ExportError(f"failed writing workbook: {e}") from e
    logger.info(f"exported project={model.project_id} file={path}")
    return path

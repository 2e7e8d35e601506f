"""Record sources that turn uploaded spreadsheets into raw rows."""
from __future__ import annotations

import io
import zipfile
from pathlib import Path
from typing import Iterator, Protocol

import pandas as pd

from callroster.core.errors import InputError

EXCEL_ENGINES = {".xlsx": "openpyxl", ".xls": "xlrd"}


class RecordSource(Protocol):
    """A finite, single-pass sequence of raw rows keyed by header name."""

    def __iter__(self) -> Iterator[dict[str, str]]: ...


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()


class SpreadsheetRecordSource:
    """Read the first worksheet of a CSV/XLSX/XLS upload.

    The file is parsed on first iteration.  Every cell is exposed as a
    stripped string and rows with no content at all are skipped.
    """

    def __init__(self, content: bytes, filename: str) -> None:
        self._content = content
        self._filename = filename

    def _read(self) -> pd.DataFrame:
        suffix = Path(self._filename).suffix.lower()
        buffer = io.BytesIO(self._content)
        try:
            if suffix == ".csv":
                return pd.read_csv(buffer, dtype=str, keep_default_na=False)
            return pd.read_excel(
                buffer,
                sheet_name=0,
                dtype=str,
                keep_default_na=False,
                engine=EXCEL_ENGINES.get(suffix, "openpyxl"),
            )
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
        except (ValueError, ImportError, OSError, KeyError, zipfile.BadZipFile) as exc:
            raise InputError(f"Error parsing file: {exc}") from exc

    def __iter__(self) -> Iterator[dict[str, str]]:
        dataframe = self._read()
        columns = [str(column).strip() for column in dataframe.columns]
        for values in dataframe.itertuples(index=False, name=None):
            row = {column: _cell_text(value) for column, value in zip(columns, values)}
            if not any(row.values()):
                continue
            yield row

from __future__ import annotations


class JurimetriaError(Exception):
    """Base class for errors surfaced to the user."""


class SpreadsheetReadError(JurimetriaError):
    """The uploaded file could not be read as a whole."""


class RowShapeError(JurimetriaError):
    """Rows do not carry the headers of the expected dataset."""


class NoValidRowsError(JurimetriaError):
    """Every row of an upload was dropped during normalization."""


class DatasetBusyError(JurimetriaError):
    """A load or save for the same dataset is already running."""


class StoreError(JurimetriaError):
    """The key-value store rejected a read or write."""


class InvalidEditError(JurimetriaError):
    """A manual edit names an unknown row or column, or a bad period."""

"""Row sources feeding a merge.

A row source is a finite sequence of rows with named columns whose length is
known before iteration starts; the strategy selector needs the count before
any statement is generated.
"""

import dataclasses
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple

import pandas as pd
from pydantic import BaseModel

from sqlmerge.identifiers import is_missing, to_python


class RowSource(ABC):
    """Finite row set with named columns and a known length."""

    @property
    @abstractmethod
    def columns(self) -> List[str]:
        """Column names, in the order values appear in each row."""
        pass

    @abstractmethod
    def __iter__(self) -> Iterator[Tuple[Any, ...]]:
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass

    def index_of(self, name: str) -> Optional[int]:
        try:
            return self.columns.index(name)
        except ValueError:
            return None


def _record_fields(record: Any) -> List[str]:
    if isinstance(record, Mapping):
        return [str(k) for k in record.keys()]
    if dataclasses.is_dataclass(record):
        return [f.name for f in dataclasses.fields(record)]
    if isinstance(record, BaseModel):
        return list(type(record).model_fields.keys())
    return [k for k in vars(record) if not k.startswith("_")]


def _record_value(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


class RecordRowSource(RowSource):
    """
    Rows from an iterable of mappings, dataclasses, pydantic models or objects.

    The iterable is materialized once so it can be counted; columns default
    to the fields of the first record.
    """

    def __init__(
        self,
        records: Iterable[Any],
        columns: Optional[Sequence[str]] = None,
        ignore: Iterable[str] = (),
    ):
        self._records = list(records)
        if columns is None:
            columns = _record_fields(self._records[0]) if self._records else []

        ignored = set(ignore)
        self._columns = [c for c in columns if c not in ignored]

    @property
    def columns(self) -> List[str]:
        return self._columns

    def __iter__(self) -> Iterator[Tuple[Any, ...]]:
        for record in self._records:
            yield tuple(_record_value(record, name) for name in self._columns)

    def __len__(self) -> int:
        return len(self._records)


class DataFrameRowSource(RowSource):
    """Rows from a pandas DataFrame, with numpy scalars and NaN/NaT converted."""

    def __init__(self, df: pd.DataFrame, ignore: Iterable[str] = ()):
        ignored = set(ignore)
        keep = [c for c in df.columns if str(c) not in ignored]
        self.df = df[keep] if len(keep) != len(df.columns) else df

    @property
    def columns(self) -> List[str]:
        return [str(c) for c in self.df.columns]

    def __iter__(self) -> Iterator[Tuple[Any, ...]]:
        for row in self.df.itertuples(index=False, name=None):
            yield tuple(None if is_missing(v) else to_python(v) for v in row)

    def __len__(self) -> int:
        return len(self.df)


def as_row_source(data: Any, ignore: Iterable[str] = ()) -> RowSource:
    """Wrap ``data`` in the matching row source (row sources pass through)."""
    if isinstance(data, RowSource):
        return data
    if isinstance(data, pd.DataFrame):
        return DataFrameRowSource(data, ignore=ignore)
    if data is None:
        raise TypeError("Merge data is required")
    return RecordRowSource(data, ignore=ignore)

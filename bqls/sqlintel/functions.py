"""Function catalog describing BigQuery builtins bound by the analyzer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

from .resolved import FunctionInfo

# Return type placeholder meaning "same type as the first argument".
FIRST_ARGUMENT = "<T1>"


@dataclass(slots=True)
class FunctionEntry:
    """Description of a SQL function surfaced on hover."""

    name: str
    signatures: Tuple[str, ...]
    return_type: str | None = None
    detail: str = ""

    def info(self) -> FunctionInfo:
        return FunctionInfo(name=self.name, signatures=self.signatures, return_type=self.return_type)


class FunctionCatalog:
    """Looks up builtin functions by any of their spellings."""

    def __init__(self, entries: Sequence[FunctionEntry]) -> None:
        self._entries = {entry.name.upper(): entry for entry in entries}

    @classmethod
    def default(cls) -> "FunctionCatalog":
        return cls(_DEFAULT_FUNCTIONS)

    def get(self, name: str) -> FunctionEntry | None:
        return self._entries.get(name.upper())

    def lookup(self, names: Iterable[str]) -> FunctionInfo:
        """Return the first catalog entry matching ``names``.

        Unknown functions still resolve, without signatures, under the first
        name given.
        """

        candidates = [name for name in names if name]
        for name in candidates:
            entry = self.get(name)
            if entry is not None:
                return entry.info()
        return FunctionInfo(name=candidates[0].upper() if candidates else "")


_DEFAULT_FUNCTIONS: Tuple[FunctionEntry, ...] = (
    FunctionEntry("COUNT", ("COUNT(ANY) -> INT64", "COUNT(*) -> INT64"), "INT64", "Number of rows/values"),
    FunctionEntry("COUNTIF", ("COUNTIF(BOOL) -> INT64",), "INT64", "Number of TRUE values"),
    FunctionEntry(
        "SUM",
        ("SUM(INT64) -> INT64", "SUM(NUMERIC) -> NUMERIC", "SUM(BIGNUMERIC) -> BIGNUMERIC", "SUM(FLOAT64) -> FLOAT64"),
        FIRST_ARGUMENT,
        "Total of non-null values",
    ),
    FunctionEntry(
        "AVG",
        ("AVG(INT64) -> FLOAT64", "AVG(NUMERIC) -> NUMERIC", "AVG(BIGNUMERIC) -> BIGNUMERIC", "AVG(FLOAT64) -> FLOAT64"),
        "FLOAT64",
        "Average of non-null values",
    ),
    FunctionEntry("MIN", ("MIN(<T1>) -> <T1>",), FIRST_ARGUMENT, "Minimum non-null value"),
    FunctionEntry("MAX", ("MAX(<T1>) -> <T1>",), FIRST_ARGUMENT, "Maximum non-null value"),
    FunctionEntry("ANY_VALUE", ("ANY_VALUE(<T1>) -> <T1>",), FIRST_ARGUMENT),
    FunctionEntry("ARRAY_AGG", ("ARRAY_AGG(<T1>) -> ARRAY<T1>",), None),
    FunctionEntry(
        "STRING_AGG",
        ("STRING_AGG(STRING) -> STRING", "STRING_AGG(STRING, STRING) -> STRING", "STRING_AGG(BYTES) -> BYTES"),
        "STRING",
    ),
    FunctionEntry("COALESCE", ("COALESCE(<T1>, [<T1>, ...]) -> <T1>",), FIRST_ARGUMENT, "First non-null argument"),
    FunctionEntry("IFNULL", ("IFNULL(<T1>, <T1>) -> <T1>",), FIRST_ARGUMENT),
    FunctionEntry("NULLIF", ("NULLIF(<T1>, <T1>) -> <T1>",), FIRST_ARGUMENT),
    FunctionEntry("IF", ("IF(BOOL, <T1>, <T1>) -> <T1>",), None),
    FunctionEntry("CONCAT", ("CONCAT(STRING, [STRING, ...]) -> STRING", "CONCAT(BYTES, [BYTES, ...]) -> BYTES"), "STRING"),
    FunctionEntry("LOWER", ("LOWER(STRING) -> STRING", "LOWER(BYTES) -> BYTES"), FIRST_ARGUMENT),
    FunctionEntry("UPPER", ("UPPER(STRING) -> STRING", "UPPER(BYTES) -> BYTES"), FIRST_ARGUMENT),
    FunctionEntry("LENGTH", ("LENGTH(STRING) -> INT64", "LENGTH(BYTES) -> INT64"), "INT64"),
    FunctionEntry(
        "SUBSTR",
        ("SUBSTR(STRING, INT64, [INT64]) -> STRING", "SUBSTR(BYTES, INT64, [INT64]) -> BYTES"),
        FIRST_ARGUMENT,
    ),
    FunctionEntry("TRIM", ("TRIM(STRING, [STRING]) -> STRING", "TRIM(BYTES, BYTES) -> BYTES"), FIRST_ARGUMENT),
    FunctionEntry("SPLIT", ("SPLIT(STRING, [STRING]) -> ARRAY<STRING>", "SPLIT(BYTES, BYTES) -> ARRAY<BYTES>"), None),
    FunctionEntry("REGEXP_CONTAINS", ("REGEXP_CONTAINS(STRING, STRING) -> BOOL",), "BOOL"),
    FunctionEntry("ROUND", ("ROUND(FLOAT64, [INT64]) -> FLOAT64", "ROUND(NUMERIC, [INT64]) -> NUMERIC"), FIRST_ARGUMENT),
    FunctionEntry("ABS", ("ABS(INT64) -> INT64", "ABS(NUMERIC) -> NUMERIC", "ABS(FLOAT64) -> FLOAT64"), FIRST_ARGUMENT),
    FunctionEntry("CURRENT_DATE", ("CURRENT_DATE([STRING]) -> DATE",), "DATE"),
    FunctionEntry("CURRENT_TIMESTAMP", ("CURRENT_TIMESTAMP() -> TIMESTAMP",), "TIMESTAMP"),
    FunctionEntry(
        "DATE",
        ("DATE(INT64, INT64, INT64) -> DATE", "DATE(TIMESTAMP, [STRING]) -> DATE", "DATE(DATETIME) -> DATE"),
        "DATE",
    ),
    FunctionEntry("TIMESTAMP", ("TIMESTAMP(STRING, [STRING]) -> TIMESTAMP", "TIMESTAMP(DATE, [STRING]) -> TIMESTAMP"), "TIMESTAMP"),
    FunctionEntry("DATE_TRUNC", ("DATE_TRUNC(DATE, DATE_TIME_PART) -> DATE",), "DATE"),
    FunctionEntry("DATE_ADD", ("DATE_ADD(DATE, INTERVAL) -> DATE",), "DATE"),
    FunctionEntry("DATE_DIFF", ("DATE_DIFF(DATE, DATE, DATE_TIME_PART) -> INT64",), "INT64"),
    FunctionEntry("FORMAT_DATE", ("FORMAT_DATE(STRING, DATE) -> STRING",), "STRING"),
    FunctionEntry("TIMESTAMP_TRUNC", ("TIMESTAMP_TRUNC(TIMESTAMP, DATE_TIME_PART, [STRING]) -> TIMESTAMP",), "TIMESTAMP"),
    FunctionEntry("EXTRACT", ("EXTRACT(DATE_TIME_PART FROM DATE) -> INT64",), "INT64"),
    FunctionEntry("GENERATE_UUID", ("GENERATE_UUID() -> STRING",), "STRING"),
)


__all__ = ["FIRST_ARGUMENT", "FunctionCatalog", "FunctionEntry"]

"""Source readers and parsers for the signup CSV and the platform-users JSON.

Both parsers are forgiving: a bad row never fails the whole parse and a blank
field becomes ``None``. Only an unrecognizable JSON document raises, so the
pipeline can mark that one source as unavailable.
"""

from __future__ import annotations

import io
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd
import requests
from pydantic import RootModel, ValidationError


INT_RE = re.compile(r"^[+-]?\d+$")
FLOAT_RE = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")
URL_PREFIXES = ("http://", "https://")


class SourceFormatError(ValueError):
    """Raised when a source document has none of the accepted shapes."""


class PlatformPayload(RootModel[Union[List[List[Dict[str, Any]]], List[Dict[str, Any]]]]):
    """Either a flat array of user objects or an array wrapping such arrays."""


def is_url(source: object) -> bool:
    return str(source).strip().lower().startswith(URL_PREFIXES)


def read_source_text(source: Union[str, Path], timeout: Optional[float] = None) -> str:
    """Read a local file or fetch an http(s) URL and return its text."""
    if is_url(source):
        response = requests.get(str(source).strip(), timeout=timeout)
        response.raise_for_status()
        return response.text
    return Path(source).read_text(encoding="utf-8-sig")


# ---------------- Tabular parsing ----------------
def coerce_scalar(value: object) -> Any:
    """Type one delimited field: ints, floats, None for blanks, else the stripped string."""
    if value is None:
        return None
    if not isinstance(value, str) and pd.isna(value):
        return None
    s = str(value).strip()
    if not s:
        return None
    if INT_RE.match(s):
        return int(s)
    if FLOAT_RE.match(s):
        return float(s)
    return s


def parse_delimited_text(text: str, delimiter: str = ",") -> List[Dict[str, Any]]:
    """Parse delimited text with a header row into typed records.

    Short rows are padded with ``None``, long rows are cut to the header width,
    and rows whose fields are all blank are skipped.
    """
    if not text or not text.strip():
        return []
    try:
        header = pd.read_csv(io.StringIO(text), sep=delimiter, nrows=0, engine="python")
    except pd.errors.EmptyDataError:
        return []
    width = len(header.columns)

    df = pd.read_csv(
        io.StringIO(text),
        sep=delimiter,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        engine="python",
        on_bad_lines=lambda bad_line: bad_line[:width],
    )
    df.columns = [str(c).strip() for c in df.columns]

    out: List[Dict[str, Any]] = []
    for row in df.to_dict(orient="records"):
        record = {key: coerce_scalar(val) for key, val in row.items()}
        if all(val is None for val in record.values()):
            continue
        out.append(record)
    return out


# ---------------- JSON parsing ----------------
def parse_platform_json(text: str) -> List[Dict[str, Any]]:
    """Return the platform-user objects from a flat or array-wrapped JSON document."""
    if not text or not text.strip():
        raise SourceFormatError("platform document is empty")
    try:
        payload = PlatformPayload.model_validate_json(text).root
    except ValidationError as exc:
        raise SourceFormatError(f"unrecognized platform document: {exc.error_count()} validation error(s)") from exc

    if payload and all(isinstance(item, list) for item in payload):
        flat: List[Dict[str, Any]] = []
        for inner in payload:
            flat.extend(inner)
        return flat
    return list(payload)

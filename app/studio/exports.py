from __future__ import annotations

import csv
import io
import json
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from flask import Response

BOM = "\ufeff"


def _cell_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _csv_cell(value: Any) -> str:
    return "" if value is None else _cell_text(value)


def format_csv_field(value: Any) -> str:
    """One CSV cell, quoted only where the csv module would quote it."""
    if value is None:
        return ""
    out = io.StringIO()
    csv.writer(out, lineterminator="\r\n").writerow([_csv_cell(value)])
    return out.getvalue().removesuffix("\r\n")


def build_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]], include_headers: bool = True) -> str:
    """Excel-friendly CSV text: UTF-8 BOM, CRLF between lines, no trailing line break."""
    out = io.StringIO()
    w = csv.writer(out, lineterminator="\r\n")
    if include_headers and headers:
        w.writerow([_csv_cell(h) for h in headers])
    for row in rows:
        w.writerow([_csv_cell(v) for v in row])
    return BOM + out.getvalue().removesuffix("\r\n")


def export_filename(filename: str, include_timestamp: bool = True, now: datetime | None = None) -> str:
    stamp = ""
    if include_timestamp:
        stamp = (now or datetime.now()).strftime("_%Y-%m-%d_%H-%M-%S")
    if filename.endswith(".csv"):
        filename = filename[: -len(".csv")]
    return f"{filename}{stamp}.csv"


def csv_response(
    headers: Sequence[str],
    rows: Iterable[Sequence[Any]],
    filename: str,
    *,
    include_timestamp: bool = True,
    include_headers: bool = True,
) -> Response:
    body = build_csv(headers, rows, include_headers=include_headers)
    name = export_filename(filename, include_timestamp=include_timestamp)
    return Response(
        body.encode("utf-8"),
        mimetype="text/csv",
        headers={
            "Content-Type": "text/csv; charset=utf-8",
            "Content-Disposition": f'attachment; filename="{name}"',
        },
    )


# ---------- Display helpers (id-ID conventions) ----------


def format_currency(amount: float | int) -> str:
    """Rupiah with '.' thousands and ',' decimals, e.g. `Rp 1.500.000`."""
    value = round(float(amount), 2)
    whole, frac = f"{abs(value):,.2f}".split(".")
    text = whole.replace(",", ".")
    frac = frac.rstrip("0")
    if frac:
        text = f"{text},{frac}"
    sign = "-" if value < 0 else ""
    return f"{sign}Rp {text}"


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def format_date(value: str) -> str:
    try:
        return _parse(value).strftime("%d/%m/%Y")
    except (TypeError, ValueError):
        return value


def format_datetime(value: str) -> str:
    try:
        return _parse(value).strftime("%d/%m/%Y, %H.%M.%S")
    except (TypeError, ValueError):
        return value


def format_boolean(value: bool | None) -> str:
    if value is None:
        return ""
    return "Ya" if value else "Tidak"

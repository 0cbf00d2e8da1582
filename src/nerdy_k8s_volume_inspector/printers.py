from __future__ import annotations

from dataclasses import asdict, is_dataclass
from io import StringIO
from typing import Any, Iterable, Sequence
import json

from kubernetes.utils import parse_quantity
from rich.console import Console
from rich.table import Table
from rich.text import Text
import yaml

OUTPUT_TABLE = "table"
OUTPUT_JSON = "json"
OUTPUT_YAML = "yaml"
OUTPUT_FORMATS = (OUTPUT_TABLE, OUTPUT_JSON, OUTPUT_YAML)

COLUMN_GAP = 3
TABLE_WIDTH = 512
_IEC_SUFFIXES = ("B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB")

Column = tuple[str, str]


def humanize_capacity(quantity: str | None) -> str:
    """Convert a Kubernetes quantity such as ``4Gi`` to ``4.0GiB``.

    Values that cannot be parsed are returned unchanged.
    """
    if not quantity:
        return ""
    try:
        size = int(parse_quantity(quantity))
    except ValueError:
        return quantity

    if size < 10:
        return f"{size}B"

    exponent = 0
    while exponent < len(_IEC_SUFFIXES) - 1 and size >= 1024 ** (exponent + 1):
        exponent += 1
    value = int(size / 1024**exponent * 10 + 0.5) / 10
    if value < 10:
        return f"{value:.1f}{_IEC_SUFFIXES[exponent]}"
    return f"{value:.0f}{_IEC_SUFFIXES[exponent]}"


def access_modes_to_string(modes: Iterable[str] | None) -> str:
    return " ".join(str(mode) for mode in modes or [])


def empty_table_message(resource: str, namespace: str = "", cas_type: str = "") -> str:
    subject = f"{cas_type} {resource}" if cas_type else resource
    if namespace:
        return f"No {subject} found in {namespace} namespace"
    return f"No {subject} found in your cluster"


def render_table(columns: Sequence[Column], rows: Sequence[Sequence[Any]]) -> str:
    table = Table(
        box=None,
        show_edge=False,
        pad_edge=False,
        padding=(0, COLUMN_GAP, 0, 0),
        header_style="",
    )
    for _, header in columns:
        table.add_column(header.upper(), no_wrap=True, overflow="ignore")
    for row in rows:
        table.add_row(*(Text(_cell_text(cell)) for cell in row))

    buffer = StringIO()
    console = Console(file=buffer, width=TABLE_WIDTH, color_system=None, highlight=False)
    console.print(table)
    return "\n".join(line.rstrip() for line in buffer.getvalue().splitlines())


def render_rows(columns: Sequence[Column], rows: Sequence[Sequence[Any]], output: str = OUTPUT_TABLE) -> str:
    if output == OUTPUT_TABLE:
        return render_table(columns, rows)

    records = [{key: _cell_text(cell) for (key, _), cell in zip(columns, row)} for row in rows]
    if output == OUTPUT_JSON:
        return json.dumps(records, indent=2)
    if output == OUTPUT_YAML:
        return yaml.safe_dump(records, sort_keys=False).rstrip("\n")
    raise ValueError(f"Unsupported output format '{output}'. Expected one of: {', '.join(OUTPUT_FORMATS)}")


def render_template(template: str, fields: Any) -> str:
    values = asdict(fields) if is_dataclass(fields) else dict(fields)
    return template.format(**values)


def _cell_text(cell: Any) -> str:
    return "" if cell is None else str(cell)

"""Table rendering for RTOS thread views.

``render_thread_table`` produces the ``vscode-data-grid`` markup consumed by
the RTOS views panel; ``format_text_table`` renders the same schema as plain
text for terminal front-ends.  Both are pure functions of their arguments.
"""

from __future__ import annotations

from dataclasses import dataclass
from html import escape
from typing import Mapping, Optional, Sequence

from tabulate import tabulate

from .model import DisplayItem, ThreadInfo

RUNNING_STATUS = "RUNNING"
STATUS_FIELD = "Status"
LINK_FIELD = "StackStart"

_HEADER_ROW = '  <vscode-data-grid-row row-type="header" class="threads-header-row">\n'
_HEADER_CELL = '    <vscode-data-grid-cell cell-type="columnheader" class="threads-header-cell" grid-column="{col}">{text}</vscode-data-grid-cell>\n'
_ROW_END = "  </vscode-data-grid-row>\n"


def _format_width(width: float) -> str:
    if float(width).is_integer():
        return f"{int(width)}fr"
    return f"{width}fr"


def _is_running(thread: ThreadInfo) -> bool:
    # a column named "Status" set to "RUNNING" marks that row
    return thread.display.get(STATUS_FIELD) == RUNNING_STATUS


def _has_second_row(field_names: Sequence[str], items: Mapping[str, DisplayItem]) -> bool:
    return any(items[key].header_row2 for key in field_names)


def _header_rows(field_names: Sequence[str], items: Mapping[str, DisplayItem]) -> str:
    rows = [[items[key].header_row1 for key in field_names]]
    if _has_second_row(field_names, items):
        rows.append([items[key].header_row2 or "" for key in field_names])
    out = ""
    for texts in rows:
        out += _HEADER_ROW
        for col, text in enumerate(texts, start=1):
            out += _HEADER_CELL.format(col=col, text=escape(text))
        out += _ROW_END
    return out


def render_thread_table(
    field_names: Sequence[str],
    display_items: Mapping[str, DisplayItem],
    threads: Sequence[ThreadInfo],
    time_info: Optional[str] = None,
    *,
    name: str = "rtos",
) -> str:
    """Render row records as a data grid.

    Columns follow ``field_names`` order and are sized in ``fr`` units from
    each item's ``width``.  A second header row is emitted only when some
    column declares ``header_row2``.  Cells of a row whose ``Status`` is
    ``RUNNING`` get the ``running`` class, and the ``StackStart`` column is
    wrapped in a link.  Missing fields render as empty cells.
    """
    col_format = " ".join(_format_width(display_items[key].width) for key in field_names)
    table = f'<vscode-data-grid class="{name}-grid threads-grid" grid-template-columns="{col_format}">\n'
    table += _header_rows(field_names, display_items)
    for thread in threads:
        running = _is_running(thread)
        table += f'  <vscode-data-grid-row class="{name}-row threads-row">\n'
        for col, key in enumerate(field_names, start=1):
            text = escape(thread.display.get(key) or "")
            lkey = key.lower()
            if key == LINK_FIELD:
                text = f'<vscode-link class="threads-link-{lkey}" href="#">{text}</vscode-link>'
            classes = [f"{name}-cell", "threads-cell", f"threads-cell-{lkey}"]
            if running:
                classes.append("running")
            table += f'    <vscode-data-grid-cell class="{" ".join(classes)}" grid-column="{col}">{text}</vscode-data-grid-cell>\n'
        table += _ROW_END
    table += "</vscode-data-grid>\n"
    if time_info:
        table += f"<p>Data collected at {escape(time_info)}</p>\n"
    return table


def format_text_table(
    field_names: Sequence[str],
    display_items: Mapping[str, DisplayItem],
    threads: Sequence[ThreadInfo],
    time_info: Optional[str] = None,
) -> str:
    """Plain-text rendering via ``tabulate``; running rows are marked with ``*``."""
    headers = [""]
    for key in field_names:
        item = display_items[key]
        headers.append(f"{item.header_row1}\n{item.header_row2}" if item.header_row2 else item.header_row1)
    rows = [
        ["*" if _is_running(thread) else ""] + [thread.display.get(key) or "" for key in field_names]
        for thread in threads
    ]
    table = tabulate(rows, headers=headers, tablefmt="simple", stralign="left", disable_numparse=True)
    lines = [line.rstrip() for line in table.splitlines()]
    if time_info:
        lines.append(f"Data collected at {time_info}")
    return "\n".join(lines) + "\n"


@dataclass
class TableSnapshot:
    """Inputs of the last rendered table, kept for alternate front-ends."""

    field_names: Sequence[str]
    display_items: Mapping[str, DisplayItem]
    threads: Sequence[ThreadInfo]
    time_info: Optional[str] = None

    def as_text(self) -> str:
        return format_text_table(self.field_names, self.display_items, self.threads, self.time_info)

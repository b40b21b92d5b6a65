"""Thread table rendering tests."""

from __future__ import annotations

from rtosdbg import DisplayItem, StackInfo, ThreadInfo, format_text_table, render_thread_table

FIELDS = ["Name", "StackStart"]
ITEMS = {
    "Name": DisplayItem(width=3, header_row1="Name"),
    "StackStart": DisplayItem(width=1.5, header_row1="Stack", header_row2="Start"),
}


def _thread(**display: str) -> ThreadInfo:
    return ThreadInfo(display=dict(display), stack_info=StackInfo(stack_start=0, stack_top=0))


def _header_cells(html: str):
    return [line for line in html.splitlines() if 'cell-type="columnheader"' in line]


def test_zero_rows_with_partial_second_header():
    html = render_thread_table(FIELDS, ITEMS, [])
    assert html.count('row-type="header"') == 2
    assert html.count('class="rtos-row threads-row"') == 0
    cells = _header_cells(html)
    assert len(cells) == 4
    assert cells[0].endswith(">Name</vscode-data-grid-cell>")
    assert cells[2].endswith('grid-column="1"></vscode-data-grid-cell>')
    assert cells[3].endswith(">Start</vscode-data-grid-cell>")


def test_single_header_row_without_second_labels():
    items = {"Name": DisplayItem(1, "Name"), "ID": DisplayItem(1, "ID")}
    html = render_thread_table(["ID", "Name"], items, [])
    assert html.count('row-type="header"') == 1


def test_column_widths_follow_field_order():
    html = render_thread_table(FIELDS, ITEMS, [])
    assert 'grid-template-columns="3fr 1.5fr"' in html


def test_running_row_is_marked():
    threads = [_thread(Name="idle", Status="RUNNING"), _thread(Name="worker", Status="BLOCKED")]
    html = render_thread_table(["Name", "Status"], {"Name": DisplayItem(1, "Name"), "Status": DisplayItem(1, "Status")}, threads)
    rows = html.split('class="rtos-row threads-row"')[1:]
    assert len(rows) == 2
    assert "running" in rows[0]
    assert "running" not in rows[1].split("</vscode-data-grid-row>")[0]


def test_missing_field_renders_empty_cell():
    html = render_thread_table(FIELDS, ITEMS, [_thread(Name="idle")])
    assert '<vscode-link class="threads-link-stackstart" href="#"></vscode-link>' in html


def test_stack_start_is_linked_and_text_escaped():
    html = render_thread_table(FIELDS, ITEMS, [_thread(Name="<isr>", StackStart="0x20000000")], name="freertos")
    assert "&lt;isr&gt;" in html
    assert "<isr>" not in html
    assert '<vscode-link class="threads-link-stackstart" href="#">0x20000000</vscode-link>' in html
    assert 'class="freertos-cell threads-cell threads-cell-stackstart"' in html
    assert 'class="freertos-grid threads-grid"' in html


def test_time_caption_only_when_given():
    assert "Data collected at" not in render_thread_table(FIELDS, ITEMS, [])
    html = render_thread_table(FIELDS, ITEMS, [], "10:15:00")
    assert html.endswith("<p>Data collected at 10:15:00</p>\n")


def test_text_table_marks_running_rows():
    threads = [_thread(Name="idle", Status="RUNNING", StackStart="0x1"), _thread(Name="worker", StackStart="0x2")]
    text = format_text_table(FIELDS, ITEMS, threads, "now")
    lines = text.splitlines()
    assert lines[0].split() == ["Name", "Stack"]
    assert lines[1].split() == ["Start"]
    assert set(lines[2].replace(" ", "")) == {"-"}
    assert lines[3].split() == ["*", "idle", "0x1"]
    assert lines[4].split() == ["worker", "0x2"]
    assert not lines[4].startswith("*")
    assert lines[-1] == "Data collected at now"


def test_text_table_without_rows_keeps_headers():
    text = format_text_table(FIELDS, ITEMS, [])
    lines = text.splitlines()
    assert len(lines) == 3
    assert "Data collected at" not in text

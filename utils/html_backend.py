"""
HTML rendering backend for summary tables.

Receives the table body and executes rendering directives (column labels,
hidden columns, text styles, footnotes, spanning headers, caption). The
result is a RenderedTable offering an HTML string and a plain display
DataFrame.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import pandas as pd

from utils.formatting import escape


def get_color_palette() -> dict[str, str]:
    """
    Unified color palette for rendered tables.
    """
    return {
        "primary": "#1E3A5F",
        "primary_dark": "#0F2440",
        "primary_light": "#E8EEF7",
        "text": "#1F2328",
        "text_secondary": "#6B7280",
        "border": "#E5E7EB",
        "surface": "#FFFFFF",
    }


def _table_css(colors: dict[str, str]) -> str:
    return f"""<style>
    .tbl-one {{
        border-collapse: collapse;
        font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', 'Roboto', sans-serif;
        font-size: 13px;
        color: {colors['text']};
        background: {colors['surface']};
    }}
    .tbl-one caption {{
        caption-side: top;
        text-align: left;
        font-weight: 600;
        padding-bottom: 8px;
        color: {colors['primary_dark']};
    }}
    .tbl-one th {{
        padding: 8px 12px;
        border-bottom: 2px solid {colors['primary']};
        text-align: center;
        font-weight: 600;
    }}
    .tbl-one th.spanner {{
        border-bottom: 1px solid {colors['border']};
    }}
    .tbl-one td {{
        padding: 6px 12px;
        border-bottom: 1px solid {colors['border']};
        text-align: center;
    }}
    .tbl-one td.col-label, .tbl-one th.col-label {{
        text-align: left;
    }}
    .tbl-one td.indent {{
        padding-left: 28px;
    }}
    .tbl-one tfoot td {{
        text-align: left;
        font-size: 11px;
        color: {colors['text_secondary']};
        border-bottom: none;
    }}
</style>"""


@dataclass(frozen=True)
class RenderedTable:
    """Backend-native result of rendering a summary table."""

    html: str
    dataframe: pd.DataFrame

    def to_html(self) -> str:
        return self.html

    def to_dataframe(self) -> pd.DataFrame:
        return self.dataframe.copy()

    def _repr_html_(self) -> str:
        return self.html

    def __str__(self) -> str:
        return self.dataframe.to_string(index=False)


class HtmlTableBackend:
    """
    Stateful rendering target built fresh for every render.

    Parameters:
        body: Table body (one row per output row).
        columns: Ordered column keys to present.
    """

    def __init__(self, body: pd.DataFrame, columns: list[str]):
        self.body = body.reset_index(drop=True)
        self.columns = list(columns)
        self.labels: dict[str, str] = {col: col for col in self.columns}
        self.hidden: set[str] = set()
        self.styles: dict[tuple[int, str], set[str]] = {}
        self.indented: set[int] = set()
        self.footnotes: list[tuple[str, tuple[str, ...]]] = []
        self.spanners: list[tuple[str, tuple[str, ...]]] = []
        self.caption: str | None = None
        self.missing_text: str | None = None

    def _select_rows(self, rows: Mapping[str, Any]) -> list[int]:
        mask = pd.Series(True, index=self.body.index)
        for column, allowed in rows.items():
            if column not in self.body.columns:
                return []
            values = allowed if isinstance(allowed, (list, tuple, set, frozenset)) else [allowed]
            mask &= self.body[column].isin(list(values))
        return self.body.index[mask].tolist()

    def set_column_labels(self, labels: Mapping[str, str]) -> None:
        for column, label in labels.items():
            if column in self.labels:
                self.labels[column] = label

    def hide_columns(self, columns: Iterable[str]) -> None:
        self.hidden.update(columns)

    def style_text(self, rows: Mapping[str, Any], columns: Iterable[str], style: str) -> None:
        targets = [c for c in columns if c in self.labels]
        for row in self._select_rows(rows):
            for column in targets:
                self.styles.setdefault((row, column), set()).add(style)

    def add_footnote(self, text: str, columns: Iterable[str] = ()) -> None:
        if not text:
            return
        columns = tuple(c for c in columns if c in self.labels)
        for i, (existing, cols) in enumerate(self.footnotes):
            if existing == text:
                self.footnotes[i] = (existing, tuple(dict.fromkeys(cols + columns)))
                return
        self.footnotes.append((text, columns))

    def add_spanner(self, label: str, columns: Iterable[str]) -> None:
        columns = tuple(c for c in columns if c in self.labels)
        # a column belongs to at most one spanner; later calls win
        self.spanners = [
            (lab, tuple(c for c in cols if c not in columns)) for lab, cols in self.spanners
        ]
        self.spanners.append((label, columns))

    def set_caption(self, text: str) -> None:
        self.caption = text

    def indent_rows(self, rows: Mapping[str, Any], column: str = "label") -> None:
        self.indented.update(self._select_rows(rows))

    def substitute_missing(self, text: str) -> None:
        self.missing_text = text

    @property
    def visible_columns(self) -> list[str]:
        return [c for c in self.columns if c not in self.hidden]

    def _cell_text(self, row: int, column: str) -> str:
        value = self.body.at[row, column] if column in self.body.columns else None
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return self.missing_text if self.missing_text is not None else ""
        return str(value)

    def _footnote_marks(self) -> dict[str, list[int]]:
        marks: dict[str, list[int]] = {}
        for number, (_text, cols) in enumerate(self.footnotes, start=1):
            for col in cols:
                marks.setdefault(col, []).append(number)
        return marks

    def _spanner_row(self, visible: list[str]) -> str:
        if not any(cols for _lab, cols in self.spanners):
            return ""
        owner = {col: lab for lab, cols in self.spanners for col in cols}
        cells = []
        i = 0
        while i < len(visible):
            label = owner.get(visible[i])
            span = 1
            while i + span < len(visible) and label is not None and owner.get(visible[i + span]) == label:
                span += 1
            text = escape(label) if label is not None else ""
            cls = " class='spanner'" if label is not None else ""
            cells.append(f"<th colspan='{span}'{cls}>{text}</th>")
            i += span
        return "<tr>" + "".join(cells) + "</tr>\n"

    def to_html(self) -> str:
        visible = self.visible_columns
        marks = self._footnote_marks()
        parts = [_table_css(get_color_palette()), "<table class='tbl-one'>"]

        if self.caption:
            parts.append(f"<caption>{escape(self.caption)}</caption>")

        parts.append("<thead>")
        parts.append(self._spanner_row(visible))
        header_cells = []
        for col in visible:
            sup = ""
            if col in marks:
                sup = "<sup>" + ",".join(str(n) for n in marks[col]) + "</sup>"
            cls = " class='col-label'" if col == "label" else ""
            header_cells.append(f"<th{cls}>{escape(self.labels[col])}{sup}</th>")
        parts.append("<tr>" + "".join(header_cells) + "</tr>")
        parts.append("</thead>\n<tbody>")

        for row in self.body.index:
            cells = []
            for col in visible:
                text = escape(self._cell_text(row, col))
                style = self.styles.get((row, col), set())
                if "italic" in style:
                    text = f"<em>{text}</em>"
                if "bold" in style:
                    text = f"<strong>{text}</strong>"
                classes = []
                if col == "label":
                    classes.append("col-label")
                    if row in self.indented:
                        classes.append("indent")
                cls = f" class='{' '.join(classes)}'" if classes else ""
                cells.append(f"<td{cls}>{text}</td>")
            parts.append("<tr>" + "".join(cells) + "</tr>")
        parts.append("</tbody>")

        if self.footnotes:
            parts.append("<tfoot>")
            for number, (text, _cols) in enumerate(self.footnotes, start=1):
                parts.append(
                    f"<tr><td colspan='{len(visible)}'><sup>{number}</sup> {escape(text)}</td></tr>"
                )
            parts.append("</tfoot>")

        parts.append("</table>")
        return "\n".join(p for p in parts if p)

    def to_dataframe(self) -> pd.DataFrame:
        visible = self.visible_columns
        rows = []
        for row in self.body.index:
            cells = []
            for col in visible:
                text = self._cell_text(row, col)
                if col == "label" and row in self.indented:
                    text = "    " + text
                cells.append(text)
            rows.append(cells)
        return pd.DataFrame(rows, columns=[self.labels[c] for c in visible])

    def result(self) -> RenderedTable:
        return RenderedTable(html=self.to_html(), dataframe=self.to_dataframe())

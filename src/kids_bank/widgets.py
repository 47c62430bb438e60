"""Custom Tkinter widgets used by the savings app."""

from __future__ import annotations

import tkinter as tk
from datetime import date
from decimal import Decimal, InvalidOperation
from tkinter import ttk
from typing import Sequence

MONEY_COLUMNS = {"balance", "amount"}


def parse_money(value: str) -> Decimal:
    """Parse what a user typed into a money field ("$1,200.50" is accepted)."""
    cleaned = value.strip().replace("$", "").replace(",", "")
    try:
        return Decimal(cleaned)
    except InvalidOperation as exc:
        raise ValueError(f"'{value}' is not an amount") from exc


class LabeledEntry(ttk.Frame):
    """A label + entry composite widget."""

    def __init__(self, master: tk.Widget, *, label: str, width: int = 20) -> None:
        super().__init__(master, padding=(0, 2))
        self.columnconfigure(1, weight=1)
        ttk.Label(self, text=label).grid(row=0, column=0, sticky="w", padx=(0, 6))
        self.var = tk.StringVar()
        self._entry = ttk.Entry(self, textvariable=self.var, width=width)
        self._entry.grid(row=0, column=1, sticky="ew")

    def get(self) -> str:
        return self.var.get()

    def set(self, value: str) -> None:
        self.var.set(value)

    def focus_set(self) -> None:
        self._entry.focus_set()


class CurrencyEntry(LabeledEntry):
    """Entry that only accepts amounts on focus-out."""

    def __init__(self, master: tk.Widget, *, label: str) -> None:
        super().__init__(master, label=label, width=14)
        vcmd = (self.register(self._validate), "%P")
        self._entry.configure(validate="focusout", validatecommand=vcmd)

    @staticmethod
    def _validate(value: str) -> bool:
        if not value:
            return True
        try:
            parse_money(value)
        except ValueError:
            return False
        return True

    def get_amount(self) -> Decimal:
        return parse_money(self.get() or "0")


class DateEntry(LabeledEntry):
    """ISO date entry (YYYY-MM-DD)."""

    def __init__(self, master: tk.Widget, *, label: str) -> None:
        super().__init__(master, label=label, width=12)

    def get_date(self) -> date:
        return date.fromisoformat(self.get().strip())

    def set_date(self, value: date) -> None:
        self.set(value.isoformat())


class LabeledChoice(ttk.Frame):
    """A label + read-only combobox."""

    def __init__(self, master: tk.Widget, *, label: str, values: Sequence[str]) -> None:
        super().__init__(master, padding=(0, 2))
        self.columnconfigure(1, weight=1)
        ttk.Label(self, text=label).grid(row=0, column=0, sticky="w", padx=(0, 6))
        self.var = tk.StringVar(value=values[0] if values else "")
        ttk.Combobox(self, textvariable=self.var, values=list(values), state="readonly").grid(
            row=0, column=1, sticky="ew"
        )

    def get(self) -> str:
        return self.var.get()

    def set(self, value: str) -> None:
        self.var.set(value)


class Table(ttk.Frame):
    """A Treeview with a scrollbar and click-to-sort headings."""

    def __init__(
        self,
        master: tk.Widget,
        *,
        columns: tuple[str, ...],
        headings: dict[str, str],
        height: int = 10,
    ) -> None:
        super().__init__(master)
        self.tree = ttk.Treeview(
            self, columns=columns, show="headings", selectmode="browse", height=height
        )
        self._headings = {
            column: headings.get(column, column.replace("_", " ").title()) for column in columns
        }
        self._sort_column: str | None = None
        self._sort_reverse = False
        for column in columns:
            anchor = "e" if column in MONEY_COLUMNS else "w"
            self.tree.column(column, anchor=anchor, stretch=True, width=110)
        self._update_headings()
        vsb = ttk.Scrollbar(self, orient="vertical", command=self.tree.yview)
        self.tree.configure(yscrollcommand=vsb.set)
        self.tree.grid(row=0, column=0, sticky="nsew")
        vsb.grid(row=0, column=1, sticky="ns")
        self.columnconfigure(0, weight=1)
        self.rowconfigure(0, weight=1)

    def populate(self, rows: list[dict[str, str]], *, key_field: str) -> None:
        """Replace the rows, keeping the current selection when it still exists."""
        selected = self.selected()
        self.tree.delete(*self.tree.get_children())
        for row in rows:
            values = [row.get(column, "") for column in self.tree["columns"]]
            self.tree.insert("", "end", iid=row[key_field], values=values)
        if self._sort_column:
            self._sort_items()
        if selected and self.tree.exists(selected):
            self.tree.selection_set(selected)

    def selected(self) -> str | None:
        selection = self.tree.selection()
        return selection[0] if selection else None

    def _toggle_sort(self, column: str) -> None:
        if self._sort_column == column:
            self._sort_reverse = not self._sort_reverse
        else:
            self._sort_column = column
            self._sort_reverse = False
        self._sort_items()
        self._update_headings()

    def _sort_items(self) -> None:
        column = self._sort_column
        items = [(self._sort_key(self.tree.set(iid, column)), iid) for iid in self.tree.get_children("")]
        items.sort(key=lambda entry: entry[0], reverse=self._sort_reverse)
        for position, (_, iid) in enumerate(items):
            self.tree.move(iid, "", position)

    @staticmethod
    def _sort_key(value: str) -> tuple[int, object]:
        try:
            number = parse_money(value.replace("+", "").replace("%", ""))
        except ValueError:
            return (1, value.lower())
        # "Nan" and "Infinity" are names, not numbers.
        if not number.is_finite():
            return (1, value.lower())
        return (0, number)

    def _update_headings(self) -> None:
        for column, text in self._headings.items():
            if column == self._sort_column:
                text = f"{text} {'▼' if self._sort_reverse else '▲'}"
            self.tree.heading(column, text=text, command=lambda col=column: self._toggle_sort(col))

"""Tkinter application wiring for the savings desktop app."""

from __future__ import annotations

import base64
import tkinter as tk
from dataclasses import replace
from datetime import date
from pathlib import Path
from tkinter import filedialog, messagebox, ttk

import structlog
from matplotlib.backends.backend_tkagg import FigureCanvasTkAgg
from matplotlib.figure import Figure

from .backup import BackupOutcome, BackupService
from .errors import AccountNotFound, InvalidAmount
from .models import MAX_AMOUNT, ZERO, Account, Gender
from .store import LedgerStore
from .viewmodels import (
    accounts_for_table,
    balance_history,
    format_currency,
    transactions_for_table,
)
from .widgets import CurrencyEntry, DateEntry, LabeledChoice, LabeledEntry, Table

log = structlog.get_logger(__name__)

AVATAR_SIZE = 96
GENDER_LABELS = {Gender.MALE: "Male", Gender.FEMALE: "Female", Gender.OTHER: "Other"}


class KidsBankApp(tk.Tk):
    """Main application window."""

    def __init__(self, store: LedgerStore, backup: BackupService) -> None:
        super().__init__()
        self.title("Kids Bank")
        self.geometry("1040x680")
        self.store = store
        self.backup = backup
        self.status_var = tk.StringVar(value="Ready")
        self._avatar_image: tk.PhotoImage | None = None
        self._chart_window: tk.Toplevel | None = None
        self._chart_canvas: FigureCanvasTkAgg | None = None
        self._chart_figure: Figure | None = None
        self._show_all_history = tk.BooleanVar(value=False)

        self._configure_styles()
        self._build_menu()
        self._build_layout()

        # Restores run on a worker thread; redraw on the Tk loop.
        self.store.add_listener(lambda _store: self.after(0, self._on_data_changed))
        self.store.load()

    # ------------------------------------------------------------------ #
    # Layout helpers
    # ------------------------------------------------------------------ #
    def _configure_styles(self) -> None:
        style = ttk.Style(self)
        style.theme_use("clam")
        style.configure("Card.TLabelframe", padding=12)
        style.configure("Card.TLabelframe.Label", font=("Segoe UI", 12, "bold"))
        style.configure("Primary.TButton", font=("Segoe UI", 10, "bold"))
        style.configure("Balance.TLabel", font=("Consolas", 14, "bold"))

    def _build_menu(self) -> None:
        menubar = tk.Menu(self)
        file_menu = tk.Menu(menubar, tearoff=0)
        file_menu.add_command(label="Export Backup...", command=self._handle_export_backup)
        file_menu.add_command(label="Import Backup...", command=self._handle_import_backup)
        file_menu.add_separator()
        file_menu.add_command(label="Quit", command=self.destroy)
        menubar.add_cascade(label="File", menu=file_menu)

        help_menu = tk.Menu(menubar, tearoff=0)
        help_menu.add_command(label="About", command=self._show_about_dialog)
        menubar.add_cascade(label="Help", menu=help_menu)
        self.config(menu=menubar)

    def _build_layout(self) -> None:
        container = ttk.Frame(self, padding=12)
        container.pack(fill="both", expand=True)
        container.columnconfigure(0, weight=1)
        container.columnconfigure(1, weight=1)
        container.rowconfigure(0, weight=1)

        self._build_accounts_section(container)
        self._build_detail_section(container)

        ttk.Label(self, textvariable=self.status_var, anchor="w", padding=(12, 4)).pack(
            fill="x", side="bottom"
        )

    def _build_accounts_section(self, parent: ttk.Frame) -> None:
        frame = ttk.Labelframe(parent, text="Family Accounts", style="Card.TLabelframe")
        frame.grid(row=0, column=0, sticky="nsew", padx=(0, 6))
        frame.columnconfigure(0, weight=1)
        frame.rowconfigure(1, weight=1)

        self.total_var = tk.StringVar(value=format_currency(0))
        totals = ttk.Frame(frame)
        totals.grid(row=0, column=0, sticky="ew", pady=(0, 8))
        ttk.Label(totals, text="Family total:").pack(side="left")
        ttk.Label(totals, textvariable=self.total_var, style="Balance.TLabel").pack(
            side="left", padx=(6, 0)
        )

        self.account_table = Table(
            frame,
            columns=("name", "age", "balance", "short_term_wish", "short_term_progress"),
            headings={
                "name": "Name",
                "age": "Age",
                "balance": "Balance",
                "short_term_wish": "Wish",
                "short_term_progress": "Goal",
            },
        )
        self.account_table.grid(row=1, column=0, sticky="nsew")
        self.account_table.tree.bind("<<TreeviewSelect>>", lambda _e: self._refresh_detail())
        self.account_table.tree.bind("<Double-1>", lambda _e: self._handle_edit_account())

        buttons = ttk.Frame(frame)
        buttons.grid(row=2, column=0, sticky="ew", pady=(8, 0))
        for idx in range(3):
            buttons.columnconfigure(idx, weight=1)
        ttk.Button(
            buttons, text="Add Child", style="Primary.TButton", command=self._handle_add_account
        ).grid(row=0, column=0, sticky="ew")
        ttk.Button(buttons, text="Edit", command=self._handle_edit_account).grid(
            row=0, column=1, sticky="ew", padx=6
        )
        ttk.Button(buttons, text="Delete", command=self._handle_delete_account).grid(
            row=0, column=2, sticky="ew"
        )

    def _build_detail_section(self, parent: ttk.Frame) -> None:
        frame = ttk.Labelframe(parent, text="Account", style="Card.TLabelframe")
        frame.grid(row=0, column=1, sticky="nsew", padx=(6, 0))
        frame.columnconfigure(1, weight=1)
        frame.rowconfigure(3, weight=1)

        self.avatar_label = ttk.Label(frame, text="No photo", width=12, anchor="center")
        self.avatar_label.grid(row=0, column=0, rowspan=2, sticky="nw", padx=(0, 12))

        self.detail_name_var = tk.StringVar(value="Select a child")
        self.detail_balance_var = tk.StringVar(value="")
        self.detail_info_var = tk.StringVar(value="")
        info = ttk.Frame(frame)
        info.grid(row=0, column=1, sticky="new")
        ttk.Label(info, textvariable=self.detail_name_var, font=("Segoe UI", 14, "bold")).pack(
            anchor="w"
        )
        ttk.Label(info, textvariable=self.detail_balance_var, style="Balance.TLabel").pack(
            anchor="w"
        )
        ttk.Label(info, textvariable=self.detail_info_var, justify="left").pack(anchor="w")

        form = ttk.Frame(frame)
        form.grid(row=2, column=0, columnspan=2, sticky="ew", pady=(12, 8))
        form.columnconfigure(1, weight=1)
        self.amount_input = CurrencyEntry(form, label="Amount")
        self.amount_input.grid(row=0, column=0, sticky="w")
        self.note_input = LabeledEntry(form, label="Note", width=24)
        self.note_input.grid(row=0, column=1, sticky="ew", padx=(12, 0))
        ttk.Button(form, text="Deposit", style="Primary.TButton", command=self._handle_deposit).grid(
            row=0, column=2, padx=(12, 0)
        )
        ttk.Button(form, text="Withdraw", command=self._handle_withdraw).grid(
            row=0, column=3, padx=(6, 0)
        )

        history = ttk.Frame(frame)
        history.grid(row=3, column=0, columnspan=2, sticky="nsew")
        history.columnconfigure(0, weight=1)
        history.rowconfigure(1, weight=1)
        header = ttk.Frame(history)
        header.grid(row=0, column=0, sticky="ew")
        ttk.Label(header, text="Transaction History", font=("Segoe UI", 10, "bold")).pack(
            side="left"
        )
        ttk.Checkbutton(
            header,
            text="All children",
            variable=self._show_all_history,
            command=self._refresh_history,
        ).pack(side="left", padx=(12, 0))
        ttk.Button(header, text="Savings Chart", command=self._open_chart_window).pack(
            side="right"
        )
        self.history_table = Table(
            history,
            columns=("date", "child", "kind", "amount", "note"),
            headings={"date": "Date", "child": "Child", "kind": "Type", "amount": "Amount"},
        )
        self.history_table.grid(row=1, column=0, sticky="nsew", pady=(4, 0))

    # ------------------------------------------------------------------ #
    # Data binding
    # ------------------------------------------------------------------ #
    def _selected_account(self) -> Account | None:
        account_id = self.account_table.selected()
        return self.store.get_account(account_id) if account_id else None

    def _on_data_changed(self) -> None:
        self.account_table.populate(list(accounts_for_table(self.store)), key_field="account_id")
        self.total_var.set(format_currency(self.store.total_balance()))
        self._refresh_detail()

    def _refresh_detail(self) -> None:
        account = self._selected_account()
        if account is None:
            self.detail_name_var.set("Select a child")
            self.detail_balance_var.set("")
            self.detail_info_var.set("")
            self._show_avatar(None)
        else:
            self.detail_name_var.set(f"{account.name}'s Account")
            self.detail_balance_var.set(format_currency(account.balance))
            self.detail_info_var.set(
                "\n".join(
                    [
                        f"{GENDER_LABELS[account.gender]}, born {account.birthday:%d %b %Y} "
                        f"(age {account.age()})",
                        f"Short-term wish: {account.short_term_wish or '-'} "
                        f"(goal {format_currency(account.short_term_goal)})",
                        f"Long-term wish: {account.long_term_wish or '-'} "
                        f"(goal {format_currency(account.long_term_goal)})",
                    ]
                )
            )
            self._show_avatar(account.avatar)
        self._refresh_history()
        self._refresh_chart()

    def _refresh_history(self) -> None:
        account = self._selected_account()
        if self._show_all_history.get():
            rows = transactions_for_table(self.store)
        elif account is not None:
            rows = transactions_for_table(self.store, account.account_id)
        else:
            rows = []
        self.history_table.populate(list(rows), key_field="transaction_id")

    def _show_avatar(self, data: bytes | None) -> None:
        self._avatar_image = None
        if data:
            try:
                image = tk.PhotoImage(data=base64.b64encode(data))
            except tk.TclError:
                log.warning("avatar_unsupported_format", size=len(data))
            else:
                factor = max(1, -(-max(image.width(), image.height()) // AVATAR_SIZE))
                self._avatar_image = image.subsample(factor, factor)
        if self._avatar_image is not None:
            self.avatar_label.configure(image=self._avatar_image, text="")
        else:
            self.avatar_label.configure(image="", text="No photo")

    def _set_status(self, message: str) -> None:
        self.status_var.set(message)

    # ------------------------------------------------------------------ #
    # Account handlers
    # ------------------------------------------------------------------ #
    def _handle_add_account(self) -> None:
        dialog = AccountDialog(self, title="Add Child")
        if dialog.result is None:
            return
        fields = dialog.result
        try:
            account = self.store.create_account(fields.pop("name"), **fields)
        except (OSError, ValueError) as exc:
            messagebox.showerror("Save Failed", str(exc))
            return
        # Queued behind the table refresh.
        self.after(0, lambda: self._select_account(account.account_id))
        self._set_status(f"Added {account.name}.")

    def _select_account(self, account_id: str) -> None:
        if self.account_table.tree.exists(account_id):
            self.account_table.tree.selection_set(account_id)
            self.account_table.tree.see(account_id)

    def _handle_edit_account(self) -> None:
        account = self._selected_account()
        if account is None:
            messagebox.showinfo("Select Child", "Select a child to edit.")
            return
        dialog = AccountDialog(self, title="Edit Child", account=account)
        if dialog.result is None:
            return
        try:
            self.store.update_account(replace(account, **dialog.result))
        except (OSError, ValueError) as exc:
            messagebox.showerror("Save Failed", str(exc))
            return
        self._set_status(f"Saved changes for {dialog.result['name']}.")

    def _handle_delete_account(self) -> None:
        account = self._selected_account()
        if account is None:
            messagebox.showinfo("Select Child", "Select a child to delete.")
            return
        if messagebox.askyesno(
            "Delete Child",
            f"Delete {account.name} and all of their transactions?",
        ):
            try:
                self.store.delete_account(account.account_id)
            except (OSError, ValueError) as exc:
                messagebox.showerror("Save Failed", str(exc))
                return
            self._set_status(f"Deleted {account.name}.")

    # ------------------------------------------------------------------ #
    # Transaction handlers
    # ------------------------------------------------------------------ #
    def _handle_deposit(self) -> None:
        self._record("deposit")

    def _handle_withdraw(self) -> None:
        self._record("withdraw")

    def _record(self, kind: str) -> None:
        account = self._selected_account()
        if account is None:
            messagebox.showinfo("Select Child", "Select a child first.")
            return
        try:
            amount = self.amount_input.get_amount()
        except ValueError:
            messagebox.showerror("Invalid Amount", "Amount must be numeric.")
            return
        try:
            txn = self.store.record_transaction(
                account.account_id, amount, kind, self.note_input.get().strip()
            )
        except InvalidAmount as exc:
            messagebox.showerror("Invalid Amount", str(exc))
            return
        except AccountNotFound as exc:
            messagebox.showerror("Error", str(exc))
            return
        except (OSError, ValueError) as exc:
            messagebox.showerror("Save Failed", str(exc))
            return
        self.amount_input.set("")
        self.note_input.set("")
        verb = "Deposited" if kind == "deposit" else "Withdrew"
        self._set_status(f"{verb} {format_currency(txn.amount)} for {account.name}.")

    # ------------------------------------------------------------------ #
    # Backup / restore
    # ------------------------------------------------------------------ #
    def _handle_export_backup(self) -> None:
        self._set_status("Preparing backup...")
        self.backup.backup(lambda outcome: self.after(0, lambda: self._on_backup_ready(outcome)))

    def _on_backup_ready(self, outcome: BackupOutcome) -> None:
        if not outcome.success or outcome.path is None:
            messagebox.showerror("Backup Failed", outcome.message)
            self._set_status(outcome.message)
            return
        target = filedialog.asksaveasfilename(
            title="Export Backup",
            defaultextension=".json",
            initialfile=outcome.path.name,
            filetypes=[("JSON files", "*.json"), ("All files", "*.*")],
        )
        if not target:
            self._set_status(f"Backup written to {outcome.path}.")
            return
        try:
            Path(target).write_bytes(outcome.path.read_bytes())
        except OSError as exc:
            messagebox.showerror("Backup Failed", str(exc))
            return
        self._set_status(f"Backup exported to {Path(target).name}.")

    def _handle_import_backup(self) -> None:
        file_path = filedialog.askopenfilename(
            title="Import Backup",
            filetypes=[("JSON files", "*.json"), ("All files", "*.*")],
        )
        if not file_path:
            return
        if not messagebox.askyesno(
            "Import Backup",
            "Importing replaces every account with the contents of the backup. Continue?",
        ):
            return
        self._set_status("Restoring backup...")
        self.backup.restore_path(
            file_path, lambda outcome: self.after(0, lambda: self._on_restored(outcome))
        )

    def _on_restored(self, outcome: BackupOutcome) -> None:
        if outcome.success:
            messagebox.showinfo("Import Complete", outcome.message)
        else:
            messagebox.showerror("Import Failed", outcome.message)
        self._set_status(outcome.message)

    # ------------------------------------------------------------------ #
    # Chart window
    # ------------------------------------------------------------------ #
    def _open_chart_window(self) -> None:
        if self._selected_account() is None:
            messagebox.showinfo("Select Child", "Select a child to chart.")
            return
        if self._chart_window and self._chart_window.winfo_exists():
            self._chart_window.lift()
            self._refresh_chart()
            return
        window = tk.Toplevel(self)
        window.title("Savings Chart")
        window.geometry("720x460")
        window.protocol("WM_DELETE_WINDOW", self._close_chart_window)
        self._chart_figure = Figure(figsize=(7, 4.2), dpi=100)
        self._chart_canvas = FigureCanvasTkAgg(self._chart_figure, master=window)
        self._chart_canvas.get_tk_widget().pack(fill="both", expand=True)
        self._chart_window = window
        self._refresh_chart()

    def _close_chart_window(self) -> None:
        if self._chart_window is not None:
            self._chart_window.destroy()
        self._chart_window = None
        self._chart_canvas = None
        self._chart_figure = None

    def _refresh_chart(self) -> None:
        if not (self._chart_window and self._chart_figure and self._chart_canvas):
            return
        account = self._selected_account()
        figure = self._chart_figure
        figure.clear()
        ax = figure.add_subplot(111)
        if account is None:
            ax.text(0.5, 0.5, "Select a child", ha="center", va="center")
            ax.set_axis_off()
        else:
            points = balance_history(account)
            if points:
                xs = [when.astimezone() for when, _ in points]
                ys = [float(balance) for _, balance in points]
                ax.step(xs, ys, where="post", color="#1f77b4", label="Balance")
                ax.scatter(xs, ys, color="#1f77b4", s=12)
            for goal, label, colour in (
                (account.short_term_goal, "Short-term goal", "#2ca02c"),
                (account.long_term_goal, "Long-term goal", "#ff7f0e"),
            ):
                if goal > 0:
                    ax.axhline(float(goal), linestyle="--", color=colour, label=label)
            ax.set_title(f"{account.name}'s savings")
            ax.set_ylabel("Balance ($)")
            if ax.get_legend_handles_labels()[0]:
                ax.legend(loc="upper left")
            figure.autofmt_xdate()
        self._chart_canvas.draw_idle()

    def _show_about_dialog(self) -> None:
        messagebox.showinfo(
            "About",
            "Kids Bank\nTrack your children's savings, wishes and goals.\n",
        )


class AccountDialog(tk.Toplevel):
    """Modal form for creating or editing a child's profile."""

    def __init__(self, master: tk.Tk, *, title: str, account: Account | None = None) -> None:
        super().__init__(master)
        self.title(title)
        self.transient(master)
        self.resizable(False, False)
        self.result: dict | None = None
        self._avatar: bytes | None = account.avatar if account else None

        body = ttk.Frame(self, padding=12)
        body.pack(fill="both", expand=True)
        body.columnconfigure(0, weight=1)

        self.name_input = LabeledEntry(body, label="Name", width=28)
        self.gender_input = LabeledChoice(body, label="Gender", values=list(GENDER_LABELS.values()))
        self.birthday_input = DateEntry(body, label="Birthday (YYYY-MM-DD)")
        self.short_wish_input = LabeledEntry(body, label="Short-term wish", width=28)
        self.long_wish_input = LabeledEntry(body, label="Long-term wish", width=28)
        self.short_goal_input = CurrencyEntry(body, label="Short-term savings goal")
        self.long_goal_input = CurrencyEntry(body, label="Long-term savings goal")
        for row, widget in enumerate(
            (
                self.name_input,
                self.gender_input,
                self.birthday_input,
                self.short_wish_input,
                self.long_wish_input,
                self.short_goal_input,
                self.long_goal_input,
            )
        ):
            widget.grid(row=row, column=0, sticky="ew")

        avatar_row = ttk.Frame(body)
        avatar_row.grid(row=7, column=0, sticky="ew", pady=(6, 0))
        self.avatar_var = tk.StringVar(value="Photo set" if self._avatar else "No photo")
        ttk.Label(avatar_row, textvariable=self.avatar_var).pack(side="left")
        ttk.Button(avatar_row, text="Clear", command=self._clear_avatar).pack(side="right")
        ttk.Button(avatar_row, text="Choose Photo...", command=self._choose_avatar).pack(
            side="right", padx=(0, 6)
        )

        buttons = ttk.Frame(body)
        buttons.grid(row=8, column=0, sticky="e", pady=(12, 0))
        ttk.Button(buttons, text="Cancel", command=self.destroy).grid(row=0, column=0, padx=(0, 6))
        ttk.Button(buttons, text="Save", style="Primary.TButton", command=self._on_save).grid(
            row=0, column=1
        )

        self._fill(account)
        self.bind("<Return>", lambda _e: self._on_save())
        self.bind("<Escape>", lambda _e: self.destroy())
        self.name_input.focus_set()
        self.wait_visibility()
        self.grab_set()
        self.wait_window(self)

    def _fill(self, account: Account | None) -> None:
        if account is None:
            self.gender_input.set(GENDER_LABELS[Gender.OTHER])
            self.birthday_input.set_date(date.today())
            return
        self.name_input.set(account.name)
        self.gender_input.set(GENDER_LABELS[account.gender])
        self.birthday_input.set_date(account.birthday)
        self.short_wish_input.set(account.short_term_wish)
        self.long_wish_input.set(account.long_term_wish)
        self.short_goal_input.set(f"{account.short_term_goal:.2f}")
        self.long_goal_input.set(f"{account.long_term_goal:.2f}")

    def _choose_avatar(self) -> None:
        file_path = filedialog.askopenfilename(
            parent=self,
            title="Choose Photo",
            filetypes=[("Images", "*.png *.gif"), ("All files", "*.*")],
        )
        if not file_path:
            return
        try:
            self._avatar = Path(file_path).read_bytes()
        except OSError as exc:
            messagebox.showerror("Photo", str(exc), parent=self)
            return
        self.avatar_var.set(Path(file_path).name)

    def _clear_avatar(self) -> None:
        self._avatar = None
        self.avatar_var.set("No photo")

    def _on_save(self) -> None:
        name = self.name_input.get().strip()
        if not name:
            messagebox.showinfo("Missing Data", "Please provide a name.", parent=self)
            return
        try:
            birthday = self.birthday_input.get_date()
        except ValueError:
            messagebox.showerror("Invalid Date", "Birthday must be YYYY-MM-DD.", parent=self)
            return
        try:
            short_goal = self.short_goal_input.get_amount()
            long_goal = self.long_goal_input.get_amount()
        except ValueError:
            messagebox.showerror("Invalid Amount", "Savings goals must be numeric.", parent=self)
            return
        if not all(goal.is_finite() and ZERO <= goal <= MAX_AMOUNT for goal in (short_goal, long_goal)):
            messagebox.showerror(
                "Invalid Amount",
                f"Savings goals must be between 0 and {MAX_AMOUNT:,}.",
                parent=self,
            )
            return
        gender = next(
            (key for key, label in GENDER_LABELS.items() if label == self.gender_input.get()),
            Gender.OTHER,
        )
        self.result = {
            "name": name,
            "gender": gender,
            "birthday": birthday,
            "short_term_wish": self.short_wish_input.get().strip(),
            "long_term_wish": self.long_wish_input.get().strip(),
            "short_term_goal": short_goal,
            "long_term_goal": long_goal,
            "avatar": self._avatar,
        }
        self.destroy()


def run_app(store: LedgerStore, backup: BackupService) -> None:
    """Convenience helper to start the Tkinter loop."""
    app = KidsBankApp(store, backup)
    app.mainloop()

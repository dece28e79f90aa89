"""Desktop front-end: source pane, output pane and Execute / Clear / Help buttons."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from formula import HELP, VERSION, Interpreter, Output

# Tkinter is only required for the desktop window. Keep the preference store
# importable on machines that don't ship it.
try:
	import tkinter as tk
	from tkinter import ttk
except Exception:  # pragma: no cover
	tk = None  # type: ignore[assignment]
	ttk = None  # type: ignore[assignment]


logger = logging.getLogger(__name__)

PREF_FORMULA = "formula"
DEFAULT_PREFERENCES = Path.home() / ".formula.json"


class PreferenceStore:
	"""Small JSON key/value file remembering the last executed source."""

	def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
		self.path = Path(path) if path is not None else DEFAULT_PREFERENCES

	def get(self, key: str, default: Any = None) -> Any:
		return self._load().get(key, default)

	def put(self, key: str, value: Any) -> None:
		data = self._load()
		data[key] = value
		self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

	def _load(self) -> Dict[str, Any]:
		try:
			data = json.loads(self.path.read_text(encoding="utf-8"))
		except FileNotFoundError:
			return {}
		except (OSError, ValueError) as exc:
			logger.warning("Ignoring unreadable preferences %s: %s", self.path, exc)
			return {}
		if not isinstance(data, dict):
			logger.warning("Ignoring malformed preferences %s", self.path)
			return {}
		return data


if tk is not None:
	class TextOutput(Output):
		"""Appends interpreter output to a read-only text widget."""

		def __init__(self, widget: "tk.Text") -> None:
			self.widget = widget

		def write(self, text: str) -> None:
			self.widget.configure(state="normal")
			self.widget.insert(tk.END, text)
			self.widget.see(tk.END)
			self.widget.configure(state="disabled")

	class FormulaApp(tk.Tk):
		def __init__(self, preferences: Optional[PreferenceStore] = None) -> None:
			super().__init__()
			self.title(f"Formula - {VERSION}")
			self.geometry("900x700")
			self.preferences = preferences or PreferenceStore()
			self._help_window: Optional[tk.Toplevel] = None
			self._build_ui()
			self.interpreter = Interpreter(TextOutput(self.output))
			self.source.insert("1.0", self.preferences.get(PREF_FORMULA, ""))

		def _build_ui(self) -> None:
			style = ttk.Style(self)
			try:
				style.theme_use("clam")
			except tk.TclError:
				pass

			self.columnconfigure(0, weight=1)
			self.rowconfigure(0, weight=0)  # toolbar
			self.rowconfigure(1, weight=1)  # panes
			toolbar = ttk.Frame(self)
			toolbar.grid(row=0, column=0, sticky="ew")
			ttk.Button(toolbar, text="Execute (Ctrl+Enter)", command=self._execute).pack(side="left", padx=4, pady=4)
			ttk.Button(toolbar, text="Clear", command=self._clear).pack(side="left", padx=4)
			ttk.Button(toolbar, text="Help", command=self._help).pack(side="left", padx=4)

			body = ttk.Panedwindow(self, orient=tk.VERTICAL)
			body.grid(row=1, column=0, sticky="nsew")
			self.source = self._new_text(body, editable=True)
			self.output = self._new_text(body, editable=False)
			body.add(self.source.master, weight=1)
			body.add(self.output.master, weight=1)

			self.status = ttk.Label(self, text="Ready", anchor="w")
			self.status.grid(row=2, column=0, sticky="ew")
			self.bind("<Control-Return>", lambda _event: self._execute())

		def _new_text(self, parent: "ttk.Panedwindow", *, editable: bool) -> "tk.Text":
			frame = ttk.Frame(parent)
			text = tk.Text(frame, height=16, width=100, wrap="none", font=("monospace", 12), undo=editable)
			vsb = ttk.Scrollbar(frame, orient="vertical", command=text.yview)
			text.configure(yscrollcommand=vsb.set)
			text.pack(side="left", fill="both", expand=True)
			vsb.pack(side="right", fill="y")
			if not editable:
				text.configure(state="disabled")
			return text

		def _execute(self) -> None:
			source = self.source.get("1.0", "end-1c")
			try:
				self.preferences.put(PREF_FORMULA, source)
			except OSError as exc:
				logger.warning("Could not save preferences: %s", exc)
			success = self.interpreter.execute(source)
			self.status.configure(text="Success" if success else "Errors, see output")

		def _clear(self) -> None:
			self.output.configure(state="normal")
			self.output.delete("1.0", tk.END)
			self.output.configure(state="disabled")
			self.status.configure(text="Ready")

		def _help(self) -> None:
			if self._help_window is not None and self._help_window.winfo_exists():
				self._help_window.lift()
				return
			window = tk.Toplevel(self)
			window.title("Formula - Help")
			text = tk.Text(window, height=24, width=60, font=("monospace", 12))
			text.insert("1.0", HELP)
			text.configure(state="disabled")
			text.pack(fill="both", expand=True)
			self._help_window = window


def main() -> None:
	if tk is None:
		raise RuntimeError("Tkinter is not available in this environment. Use the 'formula' command or the web app.")
	app = FormulaApp()  # type: ignore[call-arg]
	app.mainloop()


if __name__ == "__main__":
	main()

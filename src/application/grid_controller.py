"""
Grid Controller Module

Wires pointer, keyboard, clipboard and autocomplete events to the
selection engine and the timesheet session.

Selection coordinates are (display row index, day column index) over
the session's sorted rows.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from application.timesheet_session import TimesheetSession
from domain.autocomplete import AutocompleteEngine
from domain.entities import Employee
from domain.selection import PRIMARY_BUTTON, SelectionEngine
from infrastructure.logger import get_logger

logger = get_logger("GridController")

COPY_KEYS = ('c', 'C')
PASTE_KEYS = ('v', 'V')
CLEAR_KEYS = ('Delete', 'Backspace')


@runtime_checkable
class ClipboardPort(Protocol):
    """System clipboard access (plain text)."""

    async def read_text(self) -> str: ...

    async def write_text(self, text: str) -> None: ...


class MemoryClipboard:
    """Process-local clipboard."""

    def __init__(self, text: str = ""):
        self.text = text

    async def read_text(self) -> str:
        return self.text

    async def write_text(self, text: str) -> None:
        self.text = text


@dataclass(frozen=True)
class KeyEvent:
    """
    Key-down event.

    Attributes:
        key: Key name ('c', 'v', 'Delete', 'Backspace' ...)
        ctrl: Control modifier held
        meta: Command/Meta modifier held
        in_text_field_outside_grid: Focus is in an unrelated text input
    """
    key: str
    ctrl: bool = False
    meta: bool = False
    in_text_field_outside_grid: bool = False

    @property
    def has_command_modifier(self) -> bool:
        return self.ctrl or self.meta


class GridController:
    """
    Event handlers for the timesheet grid.

    Args:
        session: Timesheet session that owns the grid snapshot
        clipboard: System clipboard adapter
        autocomplete: Autocomplete engine; built from the session
            configuration when omitted
    """

    def __init__(
        self,
        session: TimesheetSession,
        clipboard: Optional[ClipboardPort] = None,
        autocomplete: Optional[AutocompleteEngine] = None
    ):
        self.session = session
        self.clipboard = clipboard or MemoryClipboard()
        self.selection = SelectionEngine()
        grid_settings = session.config.grid
        self.autocomplete = autocomplete or AutocompleteEngine(
            session.employees,
            limit=grid_settings.suggestion_limit,
            blur_delay=grid_settings.suggestion_blur_delay_ms / 1000
        )

    # ------------------------------------------------------------------
    # Pointer
    # ------------------------------------------------------------------
    def on_mouse_down(self, row: int, col: int, button: int = PRIMARY_BUTTON) -> None:
        self.autocomplete.dismiss_all()
        self.selection.begin_selection(row, col, button)

    def on_mouse_enter(self, row: int, col: int) -> None:
        self.selection.extend_selection(row, col)

    def on_mouse_up(self) -> None:
        """Global pointer release, also fired outside the grid."""
        self.selection.end_drag()

    def on_click(self, row: int, col: int) -> None:
        self.selection.click_select(row, col)

    # ------------------------------------------------------------------
    # Clipboard
    # ------------------------------------------------------------------
    async def copy(self) -> Optional[str]:
        """Copy the selection to the clipboard; None without a selection."""
        sel = self.selection.selection
        if sel is None:
            return None
        text = self.session.copy(sel)
        try:
            await self.clipboard.write_text(text)
        except Exception as e:
            logger.warning(f"Clipboard write failed: {e}")
            return None
        logger.debug(f"Copied {sel.height}x{sel.width} cells")
        return text

    async def paste(self) -> bool:
        """Paste clipboard text into the selection; False if nothing was written."""
        sel = self.selection.selection
        if sel is None:
            return False
        try:
            text = await self.clipboard.read_text()
        except Exception as e:
            logger.warning(f"Clipboard read failed: {e}")
            return False
        if not text:
            return False
        self.session.paste(text, sel)
        self._refresh_master()
        return True

    def fill(self) -> bool:
        sel = self.selection.selection
        if sel is None:
            return False
        self.session.fill(sel)
        return True

    def clear(self) -> bool:
        sel = self.selection.selection
        if sel is None:
            return False
        self.session.clear(sel)
        return True

    async def handle_key_down(self, event: KeyEvent) -> bool:
        """
        Keyboard shortcuts: copy, paste and clear over the selection.

        Returns:
            True if the event was handled
        """
        if event.in_text_field_outside_grid or self.selection.selection is None:
            return False
        if event.has_command_modifier and event.key in COPY_KEYS:
            return await self.copy() is not None
        if event.has_command_modifier and event.key in PASTE_KEYS:
            return await self.paste()
        if event.key in CLEAR_KEYS:
            return self.clear()
        return False

    # ------------------------------------------------------------------
    # Autocomplete-assisted info editing
    # ------------------------------------------------------------------
    def _refresh_master(self) -> None:
        self.autocomplete.set_master(self.session.employees)

    def on_info_input(self, row_id: str, field_name: str, value: str) -> None:
        self._refresh_master()
        new_grid = self.autocomplete.on_input(self.session.grid, row_id, field_name, value)
        self.session.commit(new_grid)
        self._refresh_master()

    def on_info_focus(self, row_id: str, field_name: str) -> None:
        self._refresh_master()
        current = next((emp for emp in self.session.grid if emp.id == row_id), None)
        value = getattr(current, field_name) if current is not None else ""
        self.autocomplete.on_focus(row_id, field_name, value)

    def on_info_blur(self, row_id: str, field_name: str):
        return self.autocomplete.on_blur(row_id, field_name)

    def on_composition_start(self) -> None:
        self.autocomplete.composition_start()

    def on_composition_end(self) -> None:
        self.autocomplete.composition_end()

    def select_suggestion(self, row_id: str, employee: Employee) -> None:
        new_grid = self.autocomplete.select_suggestion(self.session.grid, row_id, employee)
        self.session.commit(new_grid)
        self._refresh_master()

import logging
import math
import shutil
import subprocess

import gi

gi.require_version("Gtk", "3.0")
from gi.repository import Gtk, GLib, Gdk, GdkPixbuf
import cairo

from maxwell.defaults import TRAY_ICON_NAME, TRAY_TOOLTIP
from maxwell.reconciler import MonitorListener
from maxwell.session_monitor import SessionMonitor

logger = logging.getLogger(__name__)

# Icon colors
_COLOR_QUIET = (0.6, 0.6, 0.6)      # grey
_COLOR_WAITING = (1.0, 0.55, 0.0)   # orange, a tool needs approval
_COLOR_FINISHED = (0.3, 0.8, 0.3)   # green, a reply is waiting to be read
_ICON_SIZE = 22


def _make_icon(border_color: tuple[float, float, float]) -> GdkPixbuf.Pixbuf:
    """Draw a small cat face inside a colored border."""
    size = _ICON_SIZE
    surface = cairo.ImageSurface(cairo.FORMAT_ARGB32, size, size)
    ctx = cairo.Context(surface)

    r, g, b = border_color
    ctx.set_source_rgb(r, g, b)
    ctx.rectangle(0, 0, size, size)
    ctx.fill()
    m = 3
    ctx.set_source_rgb(0.15, 0.15, 0.2)
    ctx.rectangle(m, m, size - 2 * m, size - 2 * m)
    ctx.fill()

    # Head and ears
    ctx.set_source_rgb(0.95, 0.95, 0.95)
    ctx.arc(size / 2, size / 2 + 2, 6, 0, 2 * math.pi)
    ctx.fill()
    for x in (size / 2 - 6, size / 2 + 6):
        ctx.move_to(x, size / 2 - 6)
        ctx.line_to(x - 2 if x < size / 2 else x + 2, size / 2 - 1)
        ctx.line_to(size / 2, size / 2 - 2)
        ctx.close_path()
        ctx.fill()

    return Gdk.pixbuf_get_from_surface(surface, 0, 0, size, size)


class MaxwellTray(MonitorListener):
    """Status icon that shows pending approvals and finished replies."""

    def __init__(self, settings_path=None):
        self._waiting: list[str] = []
        self._finished: list[str] = []
        self._has_notify = shutil.which("notify-send") is not None
        self.monitor = SessionMonitor(self, settings_path=settings_path, dispatch=self._dispatch)

        # Pre-render icons
        self._icons = {
            "quiet": _make_icon(_COLOR_QUIET),
            "waiting": _make_icon(_COLOR_WAITING),
            "finished": _make_icon(_COLOR_FINISHED),
        }
        self._current_icon_state = None

        self.icon = Gtk.StatusIcon()
        self.icon.set_from_pixbuf(self._icons["quiet"])
        self.icon.set_tooltip_text(TRAY_TOOLTIP)
        self.icon.connect("popup-menu", self._on_popup)
        self.icon.connect("activate", self._on_activate)
        self.icon.set_visible(True)

        self.menu = Gtk.Menu()
        self._rebuild_menu()
        self.monitor.start()

    # -- Main thread handoff --

    @staticmethod
    def _dispatch(apply, result) -> None:
        def _run():
            apply(result)
            return False  # run once
        GLib.idle_add(_run)

    # -- MonitorListener --

    def waiting_changed(self, messages: list[str]) -> None:
        new = [m for m in messages if m not in self._waiting]
        self._waiting = messages
        if new:
            self._notify("Maxwell: approval needed", "\n".join(new))
        self._refresh()

    def waiting_cleared(self) -> None:
        self._waiting = []
        self._refresh()

    def finished_changed(self, messages: list[str]) -> None:
        new = [m for m in messages if m not in self._finished]
        self._finished = messages
        if new:
            self._notify("Maxwell: reply ready", "\n".join(new))
        self._refresh()

    def finished_cleared(self) -> None:
        self._finished = []
        self._refresh()

    # -- Dynamic icon --

    def _refresh(self) -> None:
        self._update_icon()
        self._rebuild_menu()

    def _update_icon(self) -> None:
        if self._waiting:
            new_state = "waiting"
        elif self._finished:
            new_state = "finished"
        else:
            new_state = "quiet"

        if new_state != self._current_icon_state:
            self._current_icon_state = new_state
            self.icon.set_from_pixbuf(self._icons[new_state])

        if self._waiting:
            self.icon.set_tooltip_text(f"{TRAY_TOOLTIP}: {len(self._waiting)} awaiting approval")
        elif self._finished:
            self.icon.set_tooltip_text(f"{TRAY_TOOLTIP}: {len(self._finished)} finished")
        else:
            self.icon.set_tooltip_text(TRAY_TOOLTIP)

    # -- Menu building --

    def _rebuild_menu(self) -> None:
        for child in self.menu.get_children():
            self.menu.remove(child)
            child.destroy()

        for message in self._waiting:
            self._append_message(message)
        if self._waiting and self._finished:
            self.menu.append(Gtk.SeparatorMenuItem())
        for message in self._finished:
            self._append_message(message)

        if not self._waiting and not self._finished:
            empty = Gtk.MenuItem(label="All quiet")
            empty.set_sensitive(False)
            self.menu.append(empty)

        self.menu.append(Gtk.SeparatorMenuItem())

        if self._finished:
            dismiss = Gtk.MenuItem(label="Dismiss finished")
            dismiss.connect("activate", self._on_dismiss)
            self.menu.append(dismiss)

        reload_item = Gtk.MenuItem(label="Reload settings")
        reload_item.connect("activate", self._on_reload)
        self.menu.append(reload_item)

        quit_item = Gtk.MenuItem(label="Quit Maxwell")
        quit_item.connect("activate", self._on_quit)
        self.menu.append(quit_item)

        self.menu.show_all()

    def _append_message(self, message: str) -> None:
        label = Gtk.Label(label=message)
        label.set_xalign(0)
        item = Gtk.MenuItem()
        item.add(label)
        item.set_sensitive(False)
        self.menu.append(item)

    # -- Event handlers --

    def _on_popup(self, icon, button, activate_time):
        self.menu.popup(None, None, None, None, button, activate_time)

    def _on_activate(self, icon):
        self.menu.popup(None, None, None, None, 0, Gtk.get_current_event_time())

    def _on_dismiss(self, _):
        self.monitor.dismiss_finished()

    def _on_reload(self, _):
        self.monitor.reload_settings()

    def _on_quit(self, _):
        self.monitor.stop()
        Gtk.main_quit()

    def _notify(self, title: str, body: str) -> None:
        if not self._has_notify:
            return
        try:
            subprocess.Popen(
                ["notify-send", "--urgency=normal",
                 f"--icon={TRAY_ICON_NAME}", title, body],
                stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            logger.debug("notify-send failed: %s", e)

    # -- Run --

    def run(self) -> None:
        Gtk.main()

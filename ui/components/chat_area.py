"""
Chat message display area widget.
"""
from typing import Callable, Optional

import gi

gi.require_version("Gtk", "3.0")
from gi.repository import Gtk, GLib

from models import Turn
import constants as C
from ui.components.message_bubble import (
    ImageRequest,
    MessageBubble,
    SpeakRequest,
    TypingIndicator,
    is_visible_turn,
)


class ChatArea(Gtk.Box):
    """Header plus a scrollable list of message bubbles."""

    def __init__(
        self,
        on_toggle_theme: Optional[Callable[[], None]] = None,
        on_clear: Optional[Callable[[], None]] = None,
        on_image_requested: Optional[ImageRequest] = None,
        on_speak_requested: Optional[SpeakRequest] = None,
    ):
        super().__init__(orientation=Gtk.Orientation.VERTICAL, spacing=C.SPACING_MD)
        self.get_style_context().add_class("chat-root")
        self.on_toggle_theme = on_toggle_theme
        self.on_clear = on_clear
        self.on_image_requested = on_image_requested
        self.on_speak_requested = on_speak_requested
        self._speaking = False
        self._typing_indicator: Optional[TypingIndicator] = None
        self._autoscroll_pulses = 0
        self._autoscroll_source_id = None
        self._last_known_container_width = 0

        # Header
        header = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=10)
        header.get_style_context().add_class("chat-header")

        titles = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=4)
        title_label = Gtk.Label()
        title_label.set_markup(
            f"<span font='bold' size='{C.FONT_SIZE_TITLE * 1000}'>\U0001F4AF DJ SMOKE STREAM \U0001F525</span>"
        )
        titles.pack_start(title_label, False, False, 0)
        subtitle_label = Gtk.Label()
        subtitle_label.set_markup(
            "<span size='9500'>@Sm0ken42O • Blazin’ Tech × Heavy Bass ☁️\U0001F4A8\U0001F3A7</span>"
        )
        titles.pack_start(subtitle_label, False, False, 0)
        header.pack_start(titles, True, True, 0)

        self.clear_btn = Gtk.Button()
        self.clear_btn.set_image(Gtk.Image.new_from_icon_name("user-trash-symbolic", Gtk.IconSize.BUTTON))
        self.clear_btn.set_tooltip_text("Clear chat")
        self.clear_btn.get_style_context().add_class("header-button")
        self.clear_btn.connect("clicked", self._on_clear_clicked)
        header.pack_end(self.clear_btn, False, False, 0)

        self.theme_btn = Gtk.Button()
        self.theme_btn.set_tooltip_text("Toggle theme")
        self.theme_btn.get_style_context().add_class("header-button")
        self.theme_btn.connect("clicked", self._on_theme_clicked)
        header.pack_end(self.theme_btn, False, False, 0)
        self.set_theme_icon(C.DEFAULT_THEME)

        self.pack_start(header, False, False, 0)

        # Messages container with scrolling
        scrolled = Gtk.ScrolledWindow()
        scrolled.set_vexpand(True)
        scrolled.set_hexpand(True)
        scrolled.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)
        scrolled.get_style_context().add_class("messages-panel")

        self.messages_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=C.SPACING_MD)
        self.messages_box.set_margin_top(C.SPACING_LG)
        self.messages_box.set_margin_bottom(C.SPACING_LG)
        scrolled.add(self.messages_box)
        self.pack_start(scrolled, True, True, 0)

        self.scrolled = scrolled
        self.messages_box.connect("size-allocate", self._on_messages_size_allocate)

    def set_theme_icon(self, theme: str) -> None:
        """Sun in dark mode, moon in light mode."""
        icon = "☀️" if theme == C.THEME_DARK else "\U0001F319"
        self.theme_btn.set_label(icon)

    def set_turns(self, turns: list[Turn]) -> None:
        """Replace the displayed history."""
        self.hide_typing_indicator()
        for child in list(self.messages_box.get_children()):
            self.messages_box.remove(child)
        for turn in turns:
            self.add_turn(turn, animate=False)
        self._request_scroll_to_bottom(8)

    def add_turn(self, turn: Turn, animate: bool = True) -> None:
        """Add one turn; tool plumbing turns are skipped."""
        if not is_visible_turn(turn):
            return
        bubble = MessageBubble(
            turn,
            on_image_requested=self.on_image_requested,
            max_content_width=self._content_width(),
            animate=animate,
            on_speak_requested=self.on_speak_requested,
            speaking=self._speaking,
        )
        self.messages_box.add(bubble)
        bubble.show()
        self._request_scroll_to_bottom(10)

    def set_speaking(self, speaking: bool) -> None:
        """Flip every read-aloud button between play and stop."""
        self._speaking = speaking
        for child in self.messages_box.get_children():
            if isinstance(child, MessageBubble):
                child.set_speaking(speaking)

    def show_typing_indicator(self) -> None:
        if self._typing_indicator is None:
            self._typing_indicator = TypingIndicator()
            self.messages_box.add(self._typing_indicator)
            self._request_scroll_to_bottom(8)

    def hide_typing_indicator(self) -> None:
        if self._typing_indicator is not None:
            self._typing_indicator.stop_animation()
            self.messages_box.remove(self._typing_indicator)
            self._typing_indicator = None

    def _content_width(self) -> int:
        allocated = self.messages_box.get_allocated_width()
        if allocated <= 1:
            return 550
        return max(240, int(allocated * C.MESSAGE_BUBBLE_MAX_WIDTH_RATIO) - 40)

    def _on_theme_clicked(self, _button) -> None:
        if self.on_toggle_theme:
            self.on_toggle_theme()

    def _on_clear_clicked(self, _button) -> None:
        if self.on_clear:
            self.on_clear()

    def _on_messages_size_allocate(self, _widget, allocation) -> None:
        """Re-wrap bubbles when the container width changes."""
        current_width = allocation.width if allocation else 0
        if current_width > 1 and current_width != self._last_known_container_width:
            self._last_known_container_width = current_width
            width = self._content_width()
            for child in self.messages_box.get_children():
                if isinstance(child, MessageBubble):
                    child.update_max_content_width(width)

    def _request_scroll_to_bottom(self, pulses: int = 6) -> None:
        """Schedule repeated bottom-scroll ticks to handle delayed layout updates."""
        if pulses > self._autoscroll_pulses:
            self._autoscroll_pulses = pulses
        if self._autoscroll_source_id is None:
            self._autoscroll_source_id = GLib.timeout_add(16, self._autoscroll_tick)

    def _autoscroll_tick(self) -> bool:
        adj = self.scrolled.get_vadjustment()
        if adj:
            adj.set_value(adj.get_upper() - adj.get_page_size())
        self._autoscroll_pulses -= 1
        if self._autoscroll_pulses > 0:
            return True
        self._autoscroll_source_id = None
        return False

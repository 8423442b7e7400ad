"""
Chat input widget for user message composition.
"""
import gi

gi.require_version("Gtk", "3.0")
from gi.repository import Gtk, Gdk

import constants as C


class ChatInput(Gtk.Box):
    """Text view with a send button; disabled while a turn is in flight."""

    def __init__(self):
        super().__init__(orientation=Gtk.Orientation.HORIZONTAL, spacing=10)
        self.get_style_context().add_class("input-container")
        self._loading = False

        scrolled = Gtk.ScrolledWindow()
        scrolled.set_propagate_natural_height(True)
        scrolled.set_max_content_height(84)
        scrolled.set_hexpand(True)
        scrolled.set_shadow_type(Gtk.ShadowType.NONE)

        self.text_view = Gtk.TextView()
        self.text_view.set_wrap_mode(Gtk.WrapMode.WORD)
        self.text_view.set_left_margin(12)
        self.text_view.set_right_margin(12)
        self.text_view.set_top_margin(8)
        self.text_view.set_bottom_margin(8)
        self.text_view.set_accepts_tab(False)
        self.text_view.set_tooltip_text(C.INPUT_PLACEHOLDER)
        self.text_view.get_style_context().add_class("chat-input-text")
        scrolled.add(self.text_view)
        self.pack_start(scrolled, True, True, 0)

        self.send_button = Gtk.Button(label="DROP")
        self.send_button.set_sensitive(False)
        self.send_button.set_valign(Gtk.Align.CENTER)
        self.send_button.get_style_context().add_class("send-button")
        self.pack_end(self.send_button, False, False, 0)

        self.mic_button = Gtk.Button()
        self.mic_button.set_image(
            Gtk.Image.new_from_icon_name("audio-input-microphone-symbolic", Gtk.IconSize.BUTTON)
        )
        self.mic_button.set_tooltip_text("Voice input")
        self.mic_button.set_valign(Gtk.Align.CENTER)
        self.mic_button.get_style_context().add_class("mic-button")
        self.pack_end(self.mic_button, False, False, 0)

        self.text_buffer = self.text_view.get_buffer()
        self.text_buffer.connect("changed", self._on_text_changed)
        self.text_view.connect("key-press-event", self._on_text_key_press)

    def _on_text_changed(self, _buffer) -> None:
        self._refresh_send_button_state()

    def _refresh_send_button_state(self) -> None:
        has_text = bool(self.get_text().strip())
        self.send_button.set_sensitive(has_text and not self._loading)

    def set_loading(self, loading: bool) -> None:
        """Lock input while a turn is in flight."""
        self._loading = bool(loading)
        self.send_button.set_label("..." if self._loading else "DROP")
        self.text_view.set_editable(not self._loading)
        self._refresh_send_button_state()

    def set_listening(self, listening: bool) -> None:
        style = self.mic_button.get_style_context()
        if listening:
            style.add_class("listening")
            self.mic_button.set_tooltip_text("Stop listening")
        else:
            style.remove_class("listening")
            self.mic_button.set_tooltip_text("Voice input")

    def get_text(self) -> str:
        start, end = self.text_buffer.get_bounds()
        return self.text_buffer.get_text(start, end, False)

    def set_text(self, text: str) -> None:
        self.text_buffer.set_text(text, -1)

    def clear(self) -> None:
        self.text_buffer.set_text("", -1)

    def focus(self) -> None:
        self.text_view.grab_focus()

    def connect_send(self, callback):
        """Connect the send button click signal."""
        self.send_button.connect("clicked", callback)

    def connect_mic(self, callback):
        self.mic_button.connect("clicked", callback)

    def _on_text_key_press(self, _widget, event) -> bool:
        """Enter sends, Shift+Enter inserts a newline."""
        if event.keyval not in (Gdk.KEY_Return, Gdk.KEY_KP_Enter):
            return False
        if event.state & Gdk.ModifierType.SHIFT_MASK:
            return False
        if self.send_button.get_sensitive():
            self.send_button.clicked()
        return True

"""
Message bubble widget for displaying chat turns.
"""
from typing import Callable, Optional

import gi

gi.require_version("Gtk", "3.0")
gi.require_version("GdkPixbuf", "2.0")
from gi.repository import Gtk, Pango, GLib, GdkPixbuf

from models import Turn, TurnRole
import constants as C

ImageRequest = Callable[[str, "MessageBubble"], None]
SpeakRequest = Callable[[str], None]


def is_visible_turn(turn: Turn) -> bool:
    """Tool results and content-less tool-call turns are not rendered."""
    if turn.role in (TurnRole.TOOL, TurnRole.SYSTEM):
        return False
    if turn.requests_tools and not turn.content.strip():
        return False
    return True


def _escape_markup(value: str) -> str:
    return GLib.markup_escape_text(value or "")


class MessageBubble(Gtk.Box):
    """A bubble showing one turn, plus its generated image if any."""

    def __init__(
        self,
        turn: Turn,
        on_image_requested: Optional[ImageRequest] = None,
        max_content_width: int = -1,
        animate: bool = True,
        on_speak_requested: Optional[SpeakRequest] = None,
        speaking: bool = False,
    ):
        """Initialize the message bubble.

        Args:
            turn: The turn to display.
            on_image_requested: Called with (url, bubble) to fetch image bytes.
            max_content_width: Maximum width for the message content.
            animate: Fade the bubble in.
            on_speak_requested: Called with the turn text from the read-aloud
                button; assistant turns only.
            speaking: Whether a clip is playing, for the initial button icon.
        """
        super().__init__(orientation=Gtk.Orientation.VERTICAL, spacing=4)
        self.turn = turn
        self.max_content_width = max_content_width
        self._fade_source_id = None
        self.image_widget: Optional[Gtk.Image] = None
        self.speak_button: Optional[Gtk.Button] = None

        is_user = turn.role == TurnRole.USER
        self.set_halign(Gtk.Align.END if is_user else Gtk.Align.START)
        self.set_margin_start(20)
        self.set_margin_end(20)
        self.set_margin_top(4)
        self.set_margin_bottom(4)

        bubble = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=4)
        bubble.get_style_context().add_class("user-bubble" if is_user else "assistant-bubble")

        header = Gtk.Label()
        header.set_halign(Gtk.Align.END if is_user else Gtk.Align.START)
        role_prefix = "You" if is_user else "DJ Smoke Stream"
        timestamp_str = turn.timestamp.strftime("%H:%M")
        header.set_markup(
            f"<span size='9000' weight='600'>{role_prefix}</span>"
            f"<span size='8500' foreground='#909090'>  {timestamp_str}</span>"
        )
        bubble.pack_start(header, False, False, 0)

        self.text_label = Gtk.Label(wrap=True)
        self.text_label.set_selectable(True)
        self.text_label.set_line_wrap(True)
        self.text_label.set_line_wrap_mode(Pango.WrapMode.WORD_CHAR)
        self.text_label.set_xalign(0.0)
        self.text_label.set_markup(
            f"<span size='11300' weight='500'>{_escape_markup(turn.content)}</span>"
        )
        if max_content_width > 0:
            self.text_label.set_max_width_chars(int(max_content_width / 8))
        bubble.pack_start(self.text_label, True, True, 0)

        if on_speak_requested is not None and turn.role == TurnRole.ASSISTANT and turn.content.strip():
            self.speak_button = Gtk.Button()
            self.speak_button.set_halign(Gtk.Align.END)
            self.speak_button.get_style_context().add_class("speak-button")
            self.speak_button.connect("clicked", lambda _b: on_speak_requested(turn.content))
            self.set_speaking(speaking)
            bubble.pack_start(self.speak_button, False, False, 0)
        self.pack_start(bubble, False, False, 0)

        if turn.image_url:
            self.image_widget = Gtk.Image.new_from_icon_name(
                "image-loading-symbolic", Gtk.IconSize.DIALOG
            )
            self.image_widget.set_halign(Gtk.Align.START)
            self.image_widget.set_tooltip_text(turn.image_url)
            self.pack_start(self.image_widget, False, False, 6)
            if on_image_requested is not None:
                on_image_requested(turn.image_url, self)

        self.show_all()
        if animate:
            self._start_fade_in()

    def set_speaking(self, speaking: bool) -> None:
        """Show stop while any clip plays, play otherwise."""
        if self.speak_button is None:
            return
        icon = "media-playback-stop-symbolic" if speaking else "media-playback-start-symbolic"
        self.speak_button.set_image(Gtk.Image.new_from_icon_name(icon, Gtk.IconSize.BUTTON))
        self.speak_button.set_tooltip_text("Stop" if speaking else "Read aloud")

    def set_image_bytes(self, data: bytes) -> bool:
        """Decode image bytes into the image widget (GTK main thread).

        Returns:
            False so it can be used directly with GLib.idle_add.
        """
        if self.image_widget is None:
            return False
        loader = GdkPixbuf.PixbufLoader()
        try:
            loader.write(data)
            loader.close()
        except GLib.Error:
            self.set_image_failed()
            return False
        pixbuf = loader.get_pixbuf()
        if pixbuf is None:
            self.set_image_failed()
            return False
        width = pixbuf.get_width()
        if width > C.IMAGE_MAX_WIDTH:
            height = int(pixbuf.get_height() * C.IMAGE_MAX_WIDTH / width)
            pixbuf = pixbuf.scale_simple(C.IMAGE_MAX_WIDTH, height, GdkPixbuf.InterpType.BILINEAR)
        self.image_widget.set_from_pixbuf(pixbuf)
        return False

    def set_image_failed(self) -> bool:
        if self.image_widget is not None:
            self.image_widget.set_from_icon_name("image-missing-symbolic", Gtk.IconSize.DIALOG)
        return False

    def update_max_content_width(self, new_width: int) -> None:
        self.max_content_width = new_width
        if new_width > 0:
            self.text_label.set_max_width_chars(int(new_width / 8))

    def _start_fade_in(self) -> None:
        """Animate newly added bubble to feel less abrupt."""
        self.set_opacity(0.0)
        duration_ms = 170
        tick_ms = 16
        total_steps = max(1, duration_ms // tick_ms)
        self._fade_step = 0

        def _tick() -> bool:
            self._fade_step += 1
            self.set_opacity(min(1.0, self._fade_step / float(total_steps)))
            if self._fade_step >= total_steps:
                self._fade_source_id = None
                return False
            return True

        self._fade_source_id = GLib.timeout_add(tick_ms, _tick)


class TypingIndicator(Gtk.Box):
    """Loading bubble with animated dots."""

    def __init__(self):
        super().__init__(orientation=Gtk.Orientation.HORIZONTAL, spacing=4)
        self.get_style_context().add_class("assistant-bubble")
        self.set_halign(Gtk.Align.START)
        self.set_margin_start(20)
        self.set_margin_end(20)
        self.set_margin_top(4)
        self.set_margin_bottom(4)

        label = Gtk.Label()
        label.set_markup(f"<span size='10500'>{_escape_markup(C.LOADING_TEXT)}</span>")
        self.pack_start(label, False, False, 0)

        self.dots = []
        for _ in range(3):
            dot = Gtk.Label()
            dot.set_markup(f"<span size='11000' foreground='{C.COLOR_ACCENT_SECONDARY}'>●</span>")
            dot.set_opacity(0.35)
            self.pack_start(dot, False, False, 0)
            self.dots.append(dot)

        self.animation_step = 0
        self.animation_timeout = GLib.timeout_add(C.TYPING_ANIMATION_INTERVAL, self._animate_dots)
        self.show_all()

    def _animate_dots(self) -> bool:
        """Pulse the dots with a per-dot offset."""
        self.animation_step = (self.animation_step + 1) % 6
        for i, dot in enumerate(self.dots):
            offset_step = (self.animation_step - i * 2) % 6
            if offset_step < 3:
                opacity = 0.2 + (offset_step / 3.0) * 0.8
            else:
                opacity = 1.0 - ((offset_step - 3) / 3.0) * 0.8
            dot.set_opacity(opacity)
        return True

    def stop_animation(self):
        if self.animation_timeout:
            GLib.source_remove(self.animation_timeout)
            self.animation_timeout = None

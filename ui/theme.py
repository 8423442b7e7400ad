"""
Theme stylesheet generation and application.
"""
import logging

import gi

gi.require_version("Gtk", "3.0")
from gi.repository import Gtk, Gdk

import constants as C

logger = logging.getLogger(__name__)


def build_css(theme: str) -> str:
    """Render the application stylesheet for a palette."""
    p = C.PALETTES.get(theme) or C.PALETTES[C.DEFAULT_THEME]
    return f"""
window, .chat-root {{
    background-image: linear-gradient(135deg, {p['bg']}, {p['bg_alt']});
    color: {p['text']};
    font-family: {C.FONT_FAMILY_BODY};
}}
.chat-header {{
    background-image: linear-gradient(135deg, {C.COLOR_ACCENT_SECONDARY}, {C.COLOR_ACCENT_PRIMARY}, {C.COLOR_ACCENT_HOT});
    border-radius: {C.RADIUS_MD}px;
    padding: {C.SPACING_LG}px;
}}
.chat-header label {{
    color: #ffffff;
}}
.header-button {{
    background-image: none;
    background-color: rgba(255, 255, 255, 0.14);
    border: 1px solid rgba(255, 255, 255, 0.22);
    border-radius: {C.RADIUS_MD}px;
}}
.messages-panel {{
    background-color: {p['glass']};
    border: 1px solid {p['border']};
    border-radius: {C.RADIUS_MD}px;
}}
.user-bubble {{
    background-color: {p['bubble_user']};
    color: {p['bubble_user_text']};
    border-radius: {C.RADIUS_BUBBLE}px;
    padding: {C.SPACING_MD}px {C.SPACING_LG}px;
}}
.user-bubble label {{
    color: {p['bubble_user_text']};
}}
.assistant-bubble {{
    background-color: {p['bubble_bot']};
    color: {p['text']};
    border-radius: {C.RADIUS_BUBBLE}px;
    padding: {C.SPACING_MD}px {C.SPACING_LG}px;
}}
.input-container {{
    background-color: {p['glass']};
    border: 1px solid {p['border']};
    border-radius: 28px;
    padding: {C.SPACING_MD}px;
}}
.chat-input-text, .chat-input-text text {{
    background-color: {p['input']};
    color: {p['text']};
}}
.send-button {{
    background-image: linear-gradient(135deg, {C.COLOR_ACCENT_PRIMARY}, #ff1aff, {C.COLOR_ACCENT_SECONDARY});
    color: #000000;
    font-weight: 800;
    border-radius: 999px;
}}
.send-button:disabled {{
    background-image: none;
    background-color: rgba(120, 120, 120, 0.4);
    color: #999999;
}}
.mic-button {{
    background-color: {p['input']};
    border-radius: 999px;
}}
.mic-button.listening {{
    background-image: linear-gradient(135deg, {C.COLOR_ACCENT_HOT}, #cc00ff);
}}
.speak-button {{
    background: none;
    border: none;
    padding: 2px;
}}
"""


class ThemeManager:
    """Owns the screen-wide CSS provider and swaps it on theme changes."""

    def __init__(self):
        self._provider = Gtk.CssProvider()
        screen = Gdk.Screen.get_default()
        if screen is not None:
            Gtk.StyleContext.add_provider_for_screen(
                screen,
                self._provider,
                Gtk.STYLE_PROVIDER_PRIORITY_APPLICATION,
            )
        else:
            logger.warning("No default screen; theme CSS not installed")

    def apply(self, theme: str) -> None:
        try:
            self._provider.load_from_data(build_css(theme).encode("utf-8"))
        except Exception as e:
            logger.error("Failed to load theme CSS for %s: %s", theme, e)
            return
        settings = Gtk.Settings.get_default()
        if settings is not None:
            settings.set_property(
                "gtk-application-prefer-dark-theme", theme == C.THEME_DARK
            )
        logger.debug("Applied theme %s", theme)

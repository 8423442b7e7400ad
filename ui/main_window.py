"""
Main application window wiring the chat widgets to the store and the loop.
"""
import asyncio
import logging
from typing import Optional

import aiohttp
import gi

gi.require_version("Gtk", "3.0")
from gi.repository import Gtk, GLib

from api import CompletionClient, CompletionLoop, LoopResult, LoopState
from api.tools import default_registry
from audio import Player, Recorder
from cloud_store import FirestoreChatStore
from config import AppConfig
from conversation_store import ConversationStore
from models import SessionState, Turn
from speech import SpeechClient, SpeechError, VoiceController
from ui.components import ChatArea, ChatInput, MessageBubble
from ui.theme import ThemeManager
import constants as C
import storage

logger = logging.getLogger(__name__)


class MainWindow(Gtk.ApplicationWindow):
    def __init__(self, app, asyncio_thread, config: AppConfig):
        super().__init__(application=app)
        self.asyncio_thread = asyncio_thread
        self.config = config
        self.set_title(f"{C.APP_NAME} - DJ Smoke Stream")
        self.set_default_size(C.WINDOW_DEFAULT_WIDTH, C.WINDOW_DEFAULT_HEIGHT)
        self.set_size_request(C.WINDOW_MIN_WIDTH, C.WINDOW_MIN_HEIGHT)

        self.session = SessionState(user_id=config.identity.user_id if config.identity else None)
        self.settings = storage.load_settings()
        self.api_client = CompletionClient(api_key=config.api_key, endpoint=config.api_endpoint)
        self.completion_loop = CompletionLoop(
            self.api_client,
            registry=default_registry(config.image_host),
            settings=self.settings,
        )
        self._image_session: Optional[aiohttp.ClientSession] = None
        self.speech_client = SpeechClient(
            api_key=config.api_key,
            endpoint=config.api_endpoint,
            stt_model=config.stt_model,
            tts_model=config.tts_model,
            tts_voice=config.tts_voice,
        )
        self.voice = VoiceController(self.speech_client, Recorder(), Player(), self.session)

        remote = None
        if config.cloud_enabled:
            remote = FirestoreChatStore(
                project_id=config.firebase_project_id,
                api_key=config.firebase_api_key,
                id_token=config.identity.id_token,
            )
        self.store = ConversationStore(
            remote=remote,
            identity=config.identity,
            schedule_remote=self._schedule_coroutine,
        )
        self.store.load()
        self.session.theme = self.store.theme

        self.theme_manager = ThemeManager()
        self.theme_manager.apply(self.session.theme)

        # Layout: header + messages on top, input pinned at the bottom
        root = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=C.SPACING_MD)
        root.set_border_width(C.SPACING_MD)
        root.get_style_context().add_class("chat-root")

        self.chat_area = ChatArea(
            on_toggle_theme=self._on_toggle_theme,
            on_clear=self._on_clear_chat,
            on_image_requested=self._on_image_requested,
            on_speak_requested=self._on_speak_requested,
        )
        self.chat_area.set_theme_icon(self.session.theme)
        root.pack_start(self.chat_area, True, True, 0)

        self.chat_input = ChatInput()
        self.chat_input.connect_send(self._on_send_message)
        self.chat_input.connect_mic(self._on_mic_toggled)
        root.pack_end(self.chat_input, False, False, 0)

        self.add(root)
        self.chat_area.set_turns(self.store.turns)
        self.connect("destroy", self._on_destroy)
        self.show_all()
        self.chat_input.focus()

    async def _async_init(self) -> None:
        """Open HTTP sessions and pull the remote history if signed in."""
        await self.api_client.initialize()
        if self.store.remote is not None:
            items = await self.store.fetch_remote()
            GLib.idle_add(self._apply_remote_history, items)

    def _apply_remote_history(self, items: list[dict]) -> bool:
        if self.session.is_loading:
            logger.info("Deferring remote history until the turn in flight finishes")
            GLib.timeout_add(C.REMOTE_APPLY_RETRY_MS, self._apply_remote_history, items)
            return False
        if self.store.apply_remote(items):
            self.chat_area.set_turns(self.store.turns)
        return False

    def _loop_running(self) -> bool:
        loop = getattr(self.asyncio_thread, "loop", None)
        return bool(loop and loop.is_running())

    def _schedule_coroutine(self, coro):
        """Submit a coroutine to the asyncio thread without waiting on it."""
        if not self._loop_running():
            raise RuntimeError("Asyncio event loop is not running")
        return asyncio.run_coroutine_threadsafe(coro, self.asyncio_thread.loop)

    def _on_send_message(self, _button) -> None:
        history = self.completion_loop.begin(self.chat_input.get_text(), self.store, self.session)
        if history is None:
            return

        user_turn = self.store.last()
        logger.info("User: %s", user_turn.content)
        self.chat_area.add_turn(user_turn)
        self.chat_input.clear()
        self.chat_input.set_loading(True)
        self.chat_area.show_typing_indicator()

        coro = self.completion_loop.run(history)
        try:
            future = self._schedule_coroutine(coro)
        except RuntimeError as e:
            coro.close()
            logger.error("Cannot run completion loop: %s", e)
            self._finish_turn(LoopResult([Turn.assistant(C.FALLBACK_SERVICE_ERROR)], LoopState.FAILED, error=str(e)))
            return
        future.add_done_callback(
            lambda f: GLib.idle_add(self._on_loop_done, f, priority=GLib.PRIORITY_DEFAULT)
        )

    def _on_loop_done(self, future) -> bool:
        try:
            result = future.result()
        except Exception as e:
            logger.error("Completion loop crashed: %s", e)
            result = LoopResult([Turn.assistant(C.FALLBACK_SERVICE_ERROR)], LoopState.FAILED, error=str(e))
        self._finish_turn(result)
        return False

    def _finish_turn(self, result: LoopResult) -> None:
        self.chat_area.hide_typing_indicator()
        self.completion_loop.finish(result, self.store, self.session)
        for turn in result.turns:
            self.chat_area.add_turn(turn)
        if result.final is not None:
            logger.info("Assistant: %s", result.final.content)
        self.chat_input.set_loading(False)
        self.chat_input.focus()

    def _on_toggle_theme(self) -> None:
        theme = self.session.toggle_theme()
        self.store.set_theme(theme)
        self.theme_manager.apply(theme)
        self.chat_area.set_theme_icon(theme)

    def _on_clear_chat(self) -> None:
        dialog = Gtk.MessageDialog(
            transient_for=self,
            modal=True,
            message_type=Gtk.MessageType.QUESTION,
            buttons=Gtk.ButtonsType.OK_CANCEL,
            text=C.CLEAR_CONFIRM_TEXT,
        )
        response = dialog.run()
        dialog.destroy()
        if response != Gtk.ResponseType.OK:
            return
        self.store.reset()
        self.chat_area.set_turns(self.store.turns)

    def _on_mic_toggled(self, _button) -> None:
        try:
            audio = self.voice.toggle_listening()
        except SpeechError as e:
            logger.warning("Voice input unavailable: %s", e)
            self.chat_input.set_listening(False)
            return
        self.chat_input.set_listening(self.session.is_listening)
        if self.session.is_listening or not audio:
            return

        coro = self.voice.transcribe(audio)
        try:
            future = self._schedule_coroutine(coro)
        except RuntimeError as e:
            coro.close()
            logger.warning("Cannot transcribe: %s", e)
            return

        def _done(f) -> None:
            try:
                text = f.result()
            except Exception as e:
                logger.warning("Transcription crashed: %s", e)
                return
            if text:
                GLib.idle_add(self._on_transcribed, text)

        future.add_done_callback(_done)

    def _on_transcribed(self, text: str) -> bool:
        self.chat_input.set_text(text)
        self.chat_input.focus()
        return False

    def _on_speak_requested(self, text: str) -> None:
        token = self.voice.toggle_speaking(text)
        self.chat_area.set_speaking(self.session.is_speaking)
        if token is None:
            return
        coro = self.voice.speak(text, token)
        try:
            future = self._schedule_coroutine(coro)
        except RuntimeError as e:
            coro.close()
            logger.warning("Cannot read aloud: %s", e)
            self._on_speech_done(token)
            return

        def _done(f) -> None:
            if f.exception() is not None:
                logger.warning("Read-aloud crashed: %s", f.exception())
            GLib.idle_add(self._on_speech_done, token)

        future.add_done_callback(_done)

    def _on_speech_done(self, token: int) -> bool:
        if self.voice.playback_finished(token):
            self.chat_area.set_speaking(False)
        return False

    def _on_image_requested(self, url: str, bubble: MessageBubble) -> None:
        coro = self._fetch_image(url)
        try:
            future = self._schedule_coroutine(coro)
        except RuntimeError as e:
            coro.close()
            logger.warning("Cannot fetch image: %s", e)
            bubble.set_image_failed()
            return

        def _done(f) -> None:
            try:
                data = f.result()
            except Exception as e:
                logger.warning("Image fetch failed for %s: %s", url, e)
                GLib.idle_add(bubble.set_image_failed)
                return
            GLib.idle_add(bubble.set_image_bytes, data)

        future.add_done_callback(_done)

    async def _fetch_image(self, url: str) -> bytes:
        if self._image_session is None or self._image_session.closed:
            self._image_session = aiohttp.ClientSession()
        async with self._image_session.get(
            url, timeout=aiohttp.ClientTimeout(total=C.IMAGE_FETCH_TIMEOUT)
        ) as resp:
            resp.raise_for_status()
            return await resp.read()

    def _on_destroy(self, _widget) -> None:
        if self.session.is_listening:
            self.voice.toggle_listening()
        if self.session.is_speaking:
            self.voice.toggle_speaking("")
        if not self._loop_running():
            return
        future = asyncio.run_coroutine_threadsafe(self._async_on_destroy(), self.asyncio_thread.loop)
        try:
            future.result(timeout=5)
        except Exception as e:
            logger.warning("Error while closing sessions: %s", e)

    async def _async_on_destroy(self) -> None:
        await self.api_client.close()
        await self.speech_client.close()
        if self.store.remote is not None:
            await self.store.remote.close()
        if self._image_session and not self._image_session.closed:
            await self._image_session.close()

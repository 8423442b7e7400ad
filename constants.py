"""
Palette, persona text and API constants for SmokeStream.
"""

APP_NAME = "SmokeStream"
APP_ID = "com.smokestream.ChatClient"

# Theme palettes (keys map 1:1 to CSS variables in ui/theme.py)
THEME_DARK = "dark"
THEME_LIGHT = "light"
THEMES = (THEME_DARK, THEME_LIGHT)
DEFAULT_THEME = THEME_DARK

PALETTES = {
    THEME_DARK: {
        "bg": "#0a0012",
        "bg_alt": "#180033",
        "text": "#f3e8ff",
        "bubble_user": "#00eaff",
        "bubble_user_text": "#000000",
        "bubble_bot": "rgba(140, 70, 230, 0.22)",
        "input": "rgba(15, 5, 35, 0.75)",
        "border": "rgba(120, 70, 255, 0.45)",
        "glass": "rgba(25, 15, 55, 0.55)",
    },
    THEME_LIGHT: {
        "bg": "#f5ebff",
        "bg_alt": "#e3d4ff",
        "text": "#140033",
        "bubble_user": "#9d4edd",
        "bubble_user_text": "#000000",
        "bubble_bot": "rgba(140, 70, 230, 0.15)",
        "input": "rgba(245, 240, 255, 0.9)",
        "border": "rgba(120, 70, 255, 0.4)",
        "glass": "rgba(255, 255, 255, 0.7)",
    },
}

COLOR_ACCENT_PRIMARY = "#00ffea"
COLOR_ACCENT_SECONDARY = "#9d4edd"
COLOR_ACCENT_HOT = "#ff3399"

# Typography
FONT_FAMILY_BODY = "system-ui, sans-serif"
FONT_SIZE_TITLE = 22
FONT_SIZE_BODY = 13

# Spacing
SPACING_SM = 8
SPACING_MD = 12
SPACING_LG = 16

# Rounded corners
RADIUS_MD = 14
RADIUS_BUBBLE = 22

# Layout dimensions
WINDOW_MIN_WIDTH = 420
WINDOW_MIN_HEIGHT = 480
WINDOW_DEFAULT_WIDTH = 760
WINDOW_DEFAULT_HEIGHT = 820
MESSAGE_BUBBLE_MAX_WIDTH_RATIO = 0.82
IMAGE_MAX_WIDTH = 480

# Typing indicator
TYPING_ANIMATION_INTERVAL = 300  # ms

# Persona and canned lines
SYSTEM_PROMPT = (
    "You are DJ Smoke Stream — @Sm0ken42O — pure 100 emoji smoke energy, "
    "cannabis clouds & caffeine rush. Talk like you're on the decks: heavy slang, "
    "\U0001F525\U0001F4A8☁️ emojis everywhere, hype tech/AI/music/art vibes. "
    "Responses short, raw, unfiltered, street-level hype. When they ask for "
    "image/art/pic/visual/photo/artwork/generate — IMMEDIATELY use generate_image "
    "tool. Keep the set lit."
)
WELCOME_GREETING = (
    "Ayyyeeee what’s good world?! DJ Smoke Stream in the cut — blazin’ that "
    "tech fire, sippin’ that triple espresso ☕\U0001F33F\U0001F4A8 Hit ya boy with "
    "whatever you got… let’s turn up \U0001F525"
)
RESET_GREETING = (
    "Fresh deck, new smoke — DJ Smoke Stream back in the mix… let’s ride "
    "again \U0001F525\U0001F4A8"
)
LOADING_TEXT = "Cookin' in the lab… bass droppin' soon \U0001F525\U0001F4A8"
INPUT_PLACEHOLDER = "Yo drop that heat on me..."
CLEAR_CONFIRM_TEXT = "Clear the whole set? Reset the vibes?"

FALLBACK_EMPTY_REPLY = "Ayo mix got fuzzy — run it back one time? ☁️"
FALLBACK_SERVICE_ERROR = (
    "Hold up — smoke break on the API… gimme a sec then we back turnt ☁️"
)
FALLBACK_ROUND_LIMIT = "Signal dropped mid-set — re-word that joint and we good \U0001F525"
IMAGE_CAPTION = "Aight — visual bomb dropped… feel that bass in ya chest \U0001F525\U0001F4A8"

# Completion API (OpenAI-compatible)
API_ENDPOINT_DEFAULT = "https://api.groq.com/openai/v1"
API_CHAT_COMPLETIONS = "/chat/completions"
API_TIMEOUT = 120

# Default settings
DEFAULT_MODEL = "llama-3.3-70b-versatile"
DEFAULT_TEMPERATURE = 0.95
DEFAULT_MAX_TOKENS = 1000
DEFAULT_TOOL_CHOICE = "auto"
DEFAULT_MAX_ROUNDS = 4

# Image endpoint
IMAGE_HOST_DEFAULT = "https://image.pollinations.ai"
IMAGE_MODEL = "flux"
IMAGE_WIDTH = 1152
IMAGE_HEIGHT = 896
IMAGE_FETCH_TIMEOUT = 90
DEFAULT_IMAGE_PROMPT = "cyberpunk smoke session neon haze dj setup heavy bass"

# Speech (audio routes of the completion provider)
API_TRANSCRIPTIONS = "/audio/transcriptions"
API_SPEECH = "/audio/speech"
SPEECH_TIMEOUT = 60
STT_MODEL = "whisper-large-v3-turbo"
STT_LANGUAGE = "en"
TTS_MODEL = "playai-tts"
TTS_VOICE = "Fritz-PlayAI"
TTS_FORMAT = "wav"
TTS_MAX_CHARS = 4000
# Played slower than recorded, which also drops the pitch
TTS_PLAYBACK_RATE = 0.92
SPEECH_SAMPLE_RATE = 16000

# Cloud document store
FIRESTORE_BASE_URL = "https://firestore.googleapis.com/v1"
FIRESTORE_COLLECTION = "chats"
FIRESTORE_TIMEOUT = 15
REMOTE_APPLY_RETRY_MS = 250

# Local persistence
STATE_FILE = "state.json"
SETTINGS_FILE = "settings.json"
STATE_VERSION = 1

"""Runtime settings. Values come from the environment (.env is loaded on import)."""
import os

from dotenv import load_dotenv

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Quiet period before the answer map is flushed
AUTOSAVE_DELAY_SECONDS = float(os.getenv("AUTOSAVE_DELAY_SECONDS", "2.0"))
TICK_SECONDS = 1

OPTION_LETTERS = ("A", "B", "C", "D")

# Countdown display thresholds
TIME_WARNING_SECONDS = 5 * 60
TIME_CRITICAL_SECONDS = 60

"""
Configuration settings for the script-match wizard.
Can be overridden via command line arguments.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Where the wizard snapshot and the stored credential live (one file per key)
SCRIPT_MATCH_HOME = Path(os.getenv("SCRIPT_MATCH_HOME", str(Path.home() / ".script_match")))

# Product variant: "instructional" (5 steps) or "story" (6 steps)
VARIANT = os.getenv("SCRIPT_MATCH_VARIANT", "instructional").lower()

# Failure policy for LLM calls: "none" surfaces the error, "demo" substitutes
# the static example payload from demo_payloads.py
FALLBACK_POLICY = os.getenv("SCRIPT_MATCH_FALLBACK", "none").lower()

# Language every LLM answer must be written in
OUTPUT_LANGUAGE = os.getenv("SCRIPT_MATCH_LANGUAGE", "Korean")

DEBUG = os.getenv("DEBUG", "").lower() in ("1", "true", "yes")


class Config:
    # Reference script limits
    min_script_chars = 10          # Analysis is refused below this length
    analysis_max_chars = 3000      # Prefix of the reference sent for analysis
    reference_max_chars = 1500     # Prefix of the reference sent as a structural exemplar
    opening_reference_max_chars = 2000

    # Target length
    default_target_minutes = 5
    min_target_minutes = 1
    max_target_minutes = 60
    chars_per_minute = 250         # Story variant: total characters per narrated minute

    # Hook must land within this many narrated seconds
    hook_seconds = 30

    temperature = 0.7

    @property
    def target_length_range(self):
        return range(self.min_target_minutes, self.max_target_minutes + 1)

    def clamp_minutes(self, minutes: int) -> int:
        """Clamp a target length to the supported minute range."""
        return max(self.min_target_minutes, min(self.max_target_minutes, int(minutes)))

    def target_chars(self, minutes: int) -> int:
        """Total character count the story variant asks for."""
        return self.clamp_minutes(minutes) * self.chars_per_minute


config = Config()

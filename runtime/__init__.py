"""
Runtime execution layer for the story engine.

This module coordinates the flow:
Narrator text → Directive parser → Scene manager / Story state / Skill checks → Persist
"""

from runtime.router import StoryRouter, TurnResult
from runtime.main import run_story

__all__ = ["StoryRouter", "TurnResult", "run_story"]

# Configuration for the story engine
#
# Every setting can be overridden with an environment variable. State files
# are plain JSON and are created on first write.

import os

# Where story-state, disposition, unlock, world-fact and trigger files live
STORY_STATE_DIR = os.getenv("STORY_STATE_DIR", os.path.join("data", "state"))

# Authored adventure content (adventure.json, acts/, scenes/, encounters/)
STORY_ADVENTURES_DIR = os.getenv("STORY_ADVENTURES_DIR", os.path.join("data", "adventures"))

# Game date new adventures start on when adventure.json has no timing.start_date
STORY_DEFAULT_GAME_DATE = os.getenv("STORY_DEFAULT_GAME_DATE", "001-1105")

# How many scenes back navigation can rewind
STORY_SCENE_HISTORY_LIMIT = int(os.getenv("STORY_SCENE_HISTORY_LIMIT", "10"))

STORY_LOG_LEVEL = os.getenv("STORY_LOG_LEVEL", "INFO")

# Example .env file content:
# STORY_STATE_DIR=data/state
# STORY_ADVENTURES_DIR=data/adventures
# STORY_SCENE_HISTORY_LIMIT=10

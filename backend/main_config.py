import os
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DB_DIR = os.path.join(BASE_DIR, "db")
SESSIONS_DIR = os.path.join(DB_DIR, "sessions")

PROMPTS_DIR = os.path.join(BASE_DIR, "prompts")

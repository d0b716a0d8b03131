from pathlib import Path

# Project root (the imagegen package directory)
BASE_PATH = Path(__file__).resolve().parent.parent

# Log files
LOG_DIR = BASE_PATH / 'log'

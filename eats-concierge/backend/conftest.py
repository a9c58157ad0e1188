import sys
from pathlib import Path


# The backend runs from src/ (`python main.py`), so tests import `main`, `models`
# and `services.*` the same way when the project is not installed.
SRC = Path(__file__).resolve().parent / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import sys
from pathlib import Path

# Make the top-level modules importable without installing the project
sys.path.insert(0, str(Path(__file__).parent.parent))

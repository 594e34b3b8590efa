"""
Test configuration and fixtures
"""
import sys
from pathlib import Path

# Add src and the tests directory (for shared helpers) to Python path
project_root = Path(__file__).parent.parent
src_path = project_root / "src"
tests_path = Path(__file__).parent

sys.path.insert(0, str(tests_path))
sys.path.insert(0, str(src_path))

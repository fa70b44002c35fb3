"""Test configuration — ensure training_metrics is importable without installing."""
import sys
from pathlib import Path

# Add project root to path so `from training_metrics.xxx import` works
sys.path.insert(0, str(Path(__file__).parent.parent))

import os
import sys
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Keep tests deterministic: built-in defaults only, no local runtime.yaml.
os.environ.setdefault("LAUNCHKIT_CONFIG", str(PROJECT_ROOT / "tests" / "no-runtime-config.yaml"))

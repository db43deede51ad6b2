from pathlib import Path
import os

PACKAGE_ROOT = Path(os.path.dirname(os.path.realpath(__file__))).parent.parent

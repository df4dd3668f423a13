"""dcim_sort core package.

Sorts camera-roll style folders into a destination tree whose directory
levels are computed from per-file metadata:

- **segments**: the four segment kinds and their evaluation
- **destination_builder**: segment chains, routing and path composition
- **duplicate_resolver**: destination index and collision policies
- **config** / **validation**: YAML loading, schema and semantic checks
- **metadata**: EXIF and file-system metadata extraction
- **processor**: discovery, parallel planning, resolution and transfer

The main entry point for sorting is the ``Processor`` class.
"""

from .processor import Processor
from .version import __version__

__all__ = [
    "__version__",
    "Processor",
]

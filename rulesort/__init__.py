"""RuleSort - Rule-based file sorting.

Declarative rules match files by name, extension, path, size, MIME type,
dates, symlink status and EXIF metadata, and run ordered actions on them
(move, copy, rename, delete, execute, skip), with dry-run simulation and
parallel execution.
"""

from rulesort.core.constants import RULESORT_VERSION

__version__ = RULESORT_VERSION

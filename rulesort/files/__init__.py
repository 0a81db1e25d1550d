"""RuleSort file handling.

- metadata: stat and EXIF metadata extraction
- template: ``{{...}}`` name templates and ``{year}/{month}/{day}`` tokens
- actions: the per-file action executor
"""

from .actions import ActionError, ActionExecutor, ActionResult, compute_destination
from .metadata import extract_metadata, read_exif
from .template import TemplateResolver, expand_date_tokens

__all__ = [
    "ActionError",
    "ActionExecutor",
    "ActionResult",
    "compute_destination",
    "extract_metadata",
    "read_exif",
    "TemplateResolver",
    "expand_date_tokens",
]

"""RuleSort Core - Shared constants, date parsing and validation.

Import specific functions from submodules:
    from rulesort.core import constants
    from rulesort.core.dates import parse_date
    from rulesort.core.validators import validate_rule
"""

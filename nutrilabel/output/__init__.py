"""Label rounding and output formatting.

Formatters live in nutrilabel.output.label_formatter; they depend on the
audit layer, which itself uses the rounding rules exported here.
"""

from nutrilabel.output.fda_rounding import (
    DAILY_VALUES,
    LabelLine,
    percent_daily_value,
    round_profile,
    round_value,
)

__all__ = [
    "DAILY_VALUES",
    "LabelLine",
    "percent_daily_value",
    "round_profile",
    "round_value",
]

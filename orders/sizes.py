"""Portion-size normalization.

Free-text sizes from the order ledger ("大盛", "L", "ご飯小", "Large", "") are
collapsed into the three SizeCategory values. Large keywords are checked
before small ones; anything else, including empty input, is regular.
"""

from typing import Optional, Union

from core.models import SizeCategory


LARGE_KEYWORDS = ("大", "L", "large")
SMALL_KEYWORDS = ("小", "S", "small")

# Display labels used on order cards and in vendor-facing messages
SIZE_LABELS = {
    SizeCategory.LARGE: "大盛",
    SizeCategory.REGULAR: "普通",
    SizeCategory.SMALL: "小盛",
}

# Row order inside one week block of the order card
SIZE_ORDER = (SizeCategory.LARGE, SizeCategory.REGULAR, SizeCategory.SMALL)


def normalize_size(raw: Optional[Union[str, SizeCategory]]) -> SizeCategory:
    """Map any size string to a SizeCategory. Never raises."""
    if isinstance(raw, SizeCategory):
        return raw
    if not raw:
        return SizeCategory.REGULAR
    text = str(raw)

    if any(keyword in text for keyword in LARGE_KEYWORDS):
        return SizeCategory.LARGE
    if any(keyword in text for keyword in SMALL_KEYWORDS):
        return SizeCategory.SMALL
    return SizeCategory.REGULAR

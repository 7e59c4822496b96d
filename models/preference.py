"""UserPreference model for natural-language categorization rules."""

from dataclasses import dataclass
from datetime import datetime

PREFERENCE_SOURCES = ("user", "learned")


@dataclass
class UserPreference:
    """A natural-language instruction that steers categorization.

    Preferences are opaque text: only the AI classifier interprets them.

    Attributes:
        id: Unique identifier (auto-generated).
        instruction: The instruction text, e.g. '"Robinhood" should be marked as a transfer'.
        source: "user" when typed by the user, "learned" when synthesized
            from a manual recategorization.
        created_at: When the preference was first stored.
        updated_at: When the text last changed; newest first in prompts.
    """

    id: int
    instruction: str
    source: str
    created_at: datetime
    updated_at: datetime

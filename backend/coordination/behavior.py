"""
BehaviorClassifier — tags a user from interaction volume and content.

First match wins:
  new_user      short-term < 5 and long-term < 3
  power_user    short-term > 20 or long-term > 10
  help_seeker   history has a '?' and a 'help'
  regular_user  everything else
"""

from typing import Optional, Sequence

from coordination.config import BehaviorConfig
from coordination.models import BehaviorType


class BehaviorClassifier:

    def __init__(self, config: Optional[BehaviorConfig] = None):
        self._config = config or BehaviorConfig()

    def classify(self, short_term: Sequence[str], long_term: Sequence) -> str:
        cfg = self._config
        short_count = len(short_term)
        long_count = len(long_term)

        if (short_count < cfg.new_user_max_short_term
                and long_count < cfg.new_user_max_long_term):
            return BehaviorType.NEW_USER.value
        if (short_count > cfg.power_user_min_short_term
                or long_count > cfg.power_user_min_long_term):
            return BehaviorType.POWER_USER.value
        # The question mark and "help" may come from different messages
        asks = any("?" in msg for msg in short_term)
        wants_help = any("help" in msg.lower() for msg in short_term)
        if asks and wants_help:
            return BehaviorType.HELP_SEEKER.value
        return BehaviorType.REGULAR_USER.value

"""Priority scoring of mentions."""

import math
from dataclasses import dataclass
from typing import Callable

# (num_followers, thread_depth, is_reply) -> score
PriorityFn = Callable[[int, int, bool], float]


@dataclass
class PriorityPolicy:
    """Default weighting: more followers and deeper threads score higher.

    Follower counts are log-scaled so large accounts don't starve everyone
    else. Direct mentions get a small bonus over replies which only mention
    the bot through Twitter's automatic reply prefix.
    """

    followers_weight: float = 1.0
    thread_depth_weight: float = 2.0
    direct_mention_bonus: float = 1.0

    def __call__(self, num_followers: int, thread_depth: int, is_reply: bool) -> float:
        score = self.followers_weight * math.log10(1 + max(num_followers, 0))
        score += self.thread_depth_weight * thread_depth
        if not is_reply:
            score += self.direct_mention_bonus
        return score

# services/sequence_generator.py

import random
from typing import List, Optional

# 9-key keypad: digits 0..8, 9 never appears
DIGITS = tuple(range(9))


def make_rng(seed: Optional[int] = None) -> random.Random:
    return random.Random(seed)


class SequenceGenerator:
    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def generate(self, length: int) -> List[int]:
        if length <= 0:
            raise ValueError("Sequence length must be positive")
        return [self.rng.choice(DIGITS) for _ in range(length)]

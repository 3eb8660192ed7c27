"""ProfileMatcher: whole-profile string similarity using rapidfuzz.

Each profile is flattened to one string (attribute values in attribute-name
order) and every distinct comparison of the blocks is scored once.
"""

from collections.abc import Callable
from typing import Literal

from optuna.distributions import CategoricalDistribution
from rapidfuzz import fuzz

from erflow.core.models import Block, EntityProfile, SimilarityPair, SimilarityPairs
from erflow.core.stage import DEFAULT_SEED, EntityMatcher

Algorithm = Literal["ratio", "token_sort_ratio", "token_set_ratio"]


class ProfileMatcher(EntityMatcher):
    """Schema-agnostic profile matcher.

    Example:
        matcher = ProfileMatcher(algorithm="token_set_ratio")
        pairs = matcher.execute_comparisons(blocks, profiles)

    Note:
        Available algorithms:
        - "ratio": Basic character-level similarity (Levenshtein ratio)
        - "token_sort_ratio": Sorts tokens before comparison (order-insensitive)
        - "token_set_ratio": Compares unique token sets (handles duplicates)
    """

    method_name = "profile_matcher"
    parameter_space = {
        "algorithm": CategoricalDistribution(["ratio", "token_sort_ratio", "token_set_ratio"]),
        "lowercase": CategoricalDistribution([True, False]),
    }

    def __init__(
        self,
        algorithm: Algorithm = "token_set_ratio",
        lowercase: bool = True,
        seed: int = DEFAULT_SEED,
    ):
        super().__init__(seed=seed)
        if algorithm not in ("ratio", "token_sort_ratio", "token_set_ratio"):
            raise ValueError(
                "algorithm must be one of: ratio, token_sort_ratio, token_set_ratio. "
                f"Got: {algorithm}"
            )
        self.algorithm = algorithm
        self.lowercase = lowercase

    def execute_comparisons(
        self,
        blocks: list[Block],
        profiles_d1: list[EntityProfile],
        profiles_d2: list[EntityProfile] | None = None,
    ) -> SimilarityPairs:
        profiles = profiles_d1 + (profiles_d2 or [])
        texts = [self._profile_text(profile) for profile in profiles]
        fuzz_func = self._get_fuzz_function()

        seen: set[tuple[int, int]] = set()
        pairs: list[SimilarityPair] = []
        for block in blocks:
            for left, right in block.pairs():
                if (left, right) in seen:
                    continue
                seen.add((left, right))
                score = fuzz_func(texts[left], texts[right]) / 100.0
                score = min(1.0, max(0.0, score))
                pairs.append(SimilarityPair(left=left, right=right, score=score))

        return SimilarityPairs(
            pairs=pairs,
            n_entities=len(profiles),
            dataset_limit=len(profiles_d1) if profiles_d2 is not None else None,
        )

    def _profile_text(self, profile: EntityProfile) -> str:
        text = " ".join(profile.attributes[name] for name in sorted(profile.attributes))
        return text.lower() if self.lowercase else text

    def _get_fuzz_function(self) -> Callable[[str, str], float]:
        if self.algorithm == "ratio":
            return fuzz.ratio
        elif self.algorithm == "token_sort_ratio":
            return fuzz.token_sort_ratio
        elif self.algorithm == "token_set_ratio":
            return fuzz.token_set_ratio
        else:  # pragma: no cover
            raise ValueError(f"Unsupported algorithm: {self.algorithm}")

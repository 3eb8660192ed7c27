"""Schema-agnostic key-based block builders.

Both builders derive blocking keys from every attribute value of a profile
and group entities sharing a key. With a SchemaPartition, keys are prefixed
by the attribute's cluster id so only values of similar attributes collide.
"""

import re
from abc import abstractmethod
from collections import defaultdict

from optuna.distributions import IntDistribution

from erflow.core.models import Block, EntityProfile, SchemaPartition
from erflow.core.stage import DEFAULT_SEED, BlockBuilder

_TOKEN_PATTERN = re.compile(r"[^\w]+")


def tokenize(value: str) -> list[str]:
    """Lowercase a value and split it on non-word characters."""
    return [token for token in _TOKEN_PATTERN.split(value.lower()) if token]


class KeyBlocking(BlockBuilder):
    """Base class for builders that map attribute values to blocking keys."""

    @abstractmethod
    def value_keys(self, value: str) -> set[str]:
        """Blocking keys of one attribute value."""
        pass  # pragma: no cover

    def build_blocks(
        self,
        profiles_d1: list[EntityProfile],
        profiles_d2: list[EntityProfile] | None = None,
        partition: SchemaPartition | None = None,
    ) -> list[Block]:
        index_d1 = self._index(profiles_d1, offset=0, partition=partition, collection=1)
        if profiles_d2 is None:
            return [
                Block(key=key, left=tuple(sorted(entities)))
                for key, entities in sorted(index_d1.items())
                if len(entities) > 1
            ]

        index_d2 = self._index(
            profiles_d2, offset=len(profiles_d1), partition=partition, collection=2
        )
        return [
            Block(key=key, left=tuple(sorted(index_d1[key])), right=tuple(sorted(index_d2[key])))
            for key in sorted(index_d1.keys() & index_d2.keys())
        ]

    def _index(
        self,
        profiles: list[EntityProfile],
        offset: int,
        partition: SchemaPartition | None,
        collection: int,
    ) -> dict[str, set[int]]:
        index: dict[str, set[int]] = defaultdict(set)
        for position, profile in enumerate(profiles):
            for attribute, value in profile.attributes.items():
                prefix = ""
                if partition is not None:
                    prefix = f"{partition.cluster_of(attribute, collection)}#"
                for key in self.value_keys(value):
                    index[prefix + key].add(offset + position)
        return index


class TokenBlocking(KeyBlocking):
    """Standard token blocking: one block per distinct token."""

    method_name = "token_blocking"

    def __init__(self, seed: int = DEFAULT_SEED):
        super().__init__(seed=seed)

    def value_keys(self, value: str) -> set[str]:
        return set(tokenize(value))


class QGramsBlocking(KeyBlocking):
    """Q-grams blocking: one block per character q-gram of every token.

    Tokens shorter than q are used as keys unchanged.
    """

    method_name = "qgrams_blocking"
    parameter_space = {"q": IntDistribution(2, 6)}

    def __init__(self, q: int = 6, seed: int = DEFAULT_SEED):
        super().__init__(seed=seed)
        if q < 1:
            raise ValueError("q must be positive")
        self.q = q

    def value_keys(self, value: str) -> set[str]:
        keys: set[str] = set()
        for token in tokenize(value):
            if len(token) <= self.q:
                keys.add(token)
            else:
                keys.update(token[i : i + self.q] for i in range(len(token) - self.q + 1))
        return keys

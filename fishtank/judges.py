"""Judge registry: the fixed, ordered judge roster cloned into each session."""

import copy

from config.config_loader import JudgeConfig
from fishtank.models import Judge


class JudgeRegistry:
    """Immutable template of judges. Order is registry order and is preserved."""

    def __init__(self, judges: list[JudgeConfig]) -> None:
        if not judges:
            raise ValueError("JudgeRegistry needs at least one judge")
        ids = [j.id for j in judges]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate judge ids: {ids}")
        self._template: tuple[Judge, ...] = tuple(
            Judge(
                id=j.id,
                name=j.name,
                voice_id=j.voice_id,
                persona=j.persona,
                prompt=j.prompt,
                conviction=j.conviction,
            )
            for j in judges
        )

    def __len__(self) -> int:
        return len(self._template)

    def clone(self) -> list[Judge]:
        """Fresh, independent copies for a new session."""
        return [copy.deepcopy(j) for j in self._template]

    def profiles(self) -> list[dict[str, str]]:
        return [{"id": j.id, "name": j.name, "persona": j.persona} for j in self._template]

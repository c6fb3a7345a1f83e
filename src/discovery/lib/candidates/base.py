"""Base abstraction for candidate generators.

Each generator has a unique name (its strategy) and an async ``generate``
method returning a ``CandidateResult`` of scored candidates.  Generators are
registered in a global registry so the recommendation pipeline can fan out
to every strategy, or a single one, by name.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from ...models import Item
from ..stores import DataSources


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class Candidate(BaseModel):
    """A single item proposed by one strategy."""

    target_id: str = Field(..., description="Catalog id of the proposed item")
    strategy: str = Field(..., description="Name of the generator that proposed it")
    score: float = Field(..., ge=0.0, le=1.0)
    reason: str = Field("", description="Human-readable justification")
    item: Item | None = Field(None, description="The catalog item, for display")


class CandidateResult(BaseModel):
    """The output of a candidate generator invocation."""

    generator_name: str = Field(..., description="Name of the generator that produced these candidates")
    candidates: list[Candidate] = Field(default_factory=list)


def to_candidate(item: Item, strategy: str, score: float, reason: str) -> Candidate:
    """Shape a catalog item into a candidate for *strategy*."""
    return Candidate(
        target_id=item.id,
        strategy=strategy,
        score=min(max(score, 0.0), 1.0),
        reason=reason,
        item=item,
    )


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class CandidateGenerator(ABC):
    """Abstract base class for named candidate generators.

    Subclasses must implement ``name`` (property) and ``generate``.  A
    generator must never return an item the user already has a behavior
    event against; passing ``exclude_seen_by=user_id`` to the catalog store
    takes care of that.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name identifying this generator (e.g. ``social``)."""
        ...

    @abstractmethod
    async def generate(
        self,
        sources: DataSources,
        user_id: str,
        limit: int = 10,
    ) -> CandidateResult:
        """Produce candidates for the given user.

        Parameters
        ----------
        sources:
            The stores to read from.
        user_id:
            The requesting user.
        limit:
            Maximum number of candidates to return.

        Returns
        -------
        CandidateResult
            Ordered candidates; empty when the strategy has no signal.
        """
        ...

    def empty(self) -> CandidateResult:
        return CandidateResult(generator_name=self.name, candidates=[])


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_generators: dict[str, CandidateGenerator] = {}


def register_generator(gen: CandidateGenerator) -> None:
    """Register a generator instance by its name."""
    _generators[gen.name] = gen


def get_generator(name: str) -> CandidateGenerator | None:
    """Look up a registered generator by name.  Returns ``None`` if not found."""
    return _generators.get(name)


def list_generators() -> list[str]:
    """Return the names of all registered generators."""
    return list(_generators.keys())

"""Candidate generation framework for the recommendation system.

Provides an abstraction for named candidate generators (one per strategy)
that the recommendation pipeline fans out to and that can be listed or
called individually through the API.
"""

from ...config import get_settings
from .base import (
    Candidate,
    CandidateGenerator,
    CandidateResult,
    get_generator,
    list_generators,
    register_generator,
    to_candidate,
)
from .category import CategoryCandidateGenerator
from .collaborative import CollaborativeCandidateGenerator
from .content_based import ContentBasedCandidateGenerator
from .location import LocationCandidateGenerator
from .popularity import PopularityCandidateGenerator
from .social import SocialCandidateGenerator

# Register built-in generators
register_generator(CollaborativeCandidateGenerator())
register_generator(ContentBasedCandidateGenerator())
register_generator(PopularityCandidateGenerator(weights=get_settings().popularity))
register_generator(LocationCandidateGenerator())
register_generator(CategoryCandidateGenerator())
register_generator(SocialCandidateGenerator())

__all__ = [
    "Candidate",
    "CandidateGenerator",
    "CandidateResult",
    "get_generator",
    "list_generators",
    "register_generator",
    "to_candidate",
    "CategoryCandidateGenerator",
    "CollaborativeCandidateGenerator",
    "ContentBasedCandidateGenerator",
    "LocationCandidateGenerator",
    "PopularityCandidateGenerator",
    "SocialCandidateGenerator",
]

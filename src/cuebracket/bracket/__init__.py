"""Bracket generation: seeding, structure, byes, generators and the service facade."""

from cuebracket.bracket.byes import ByeProcessor
from cuebracket.bracket.generator import (
    BracketGenerator,
    BracketResult,
    SingleEliminationGenerator,
)
from cuebracket.bracket.seeding import (
    ManualSeeder,
    RandomSeeder,
    RatingSeeder,
    SeedAssignment,
    Seeder,
)
from cuebracket.bracket.service import BracketService, build_bracket_service
from cuebracket.bracket.standings import calculate_final_positions
from cuebracket.bracket.structure import BracketStructure, BracketStructureBuilder, RoundInfo

__all__ = [
    "BracketGenerator",
    "BracketResult",
    "BracketService",
    "BracketStructure",
    "BracketStructureBuilder",
    "ByeProcessor",
    "ManualSeeder",
    "RandomSeeder",
    "RatingSeeder",
    "RoundInfo",
    "SeedAssignment",
    "Seeder",
    "SingleEliminationGenerator",
    "build_bracket_service",
    "calculate_final_positions",
]

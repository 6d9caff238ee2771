"""
cuebracket - Tournament bracket engine for pool/cue-sports events

Builds seeded single-elimination brackets and drives each match through
submission, confirmation, dispute and arbitration, pushing winners along
the bracket tree until a champion is produced.

Main components:
- draw: Positional math (bracket size, seed pairing, parent slots)
- bracket: Seeding, structure, bye handling, generators and the service facade
- matches: Match state machine and score validation
- tasks: Background sweeps and the bracket generation job
- db: SQLAlchemy models and session management
"""

__version__ = "0.1.0"

"""
quizdesk - quiz authoring, validation and grading engine.

The engine is the domain core of a school-management application:
- Question model (tagged variants per question type)
- Draft validation before save
- Deterministic per-attempt presentation shuffling
- Auto-grading with manual-review routing
- Lifecycle and result-visibility policy
- Batched notification fan-out
- Attempt export
"""

__version__ = "1.0.0"

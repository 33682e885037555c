"""Scene Director: generation orchestration for AI storyboards."""

__version__ = "0.1.0"

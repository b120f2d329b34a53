"""Session coordination for interactive chess against a UCI engine.

Sessions own a position, an optional engine channel and a mode policy
(free play, coaching, puzzle, challenge, training). The rules oracle is
python-chess; the engine is any UCI binary reached over a line protocol.
"""

__version__ = "0.1.0"

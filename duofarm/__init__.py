"""Virtual farm kept alive by a paired duo: animal health decay, feeding and the plant shop."""

__version__ = "0.1.0"

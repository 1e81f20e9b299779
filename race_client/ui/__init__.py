from .cli import RaceCLI

__all__ = ["RaceCLI"]

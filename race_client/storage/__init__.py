from .registry import ParticipantRegistry

__all__ = ["ParticipantRegistry"]

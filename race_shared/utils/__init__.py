from .common import flatten_keys, new_race_id

__all__ = ["new_race_id", "flatten_keys"]

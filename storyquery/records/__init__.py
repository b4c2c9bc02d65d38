from .finder import build_predicate, find_records

__all__ = ["build_predicate", "find_records"]

from . import questions, tasks

__all__ = ["questions", "tasks"]

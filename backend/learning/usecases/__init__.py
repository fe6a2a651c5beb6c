"""Use case layer for the learning context.

Re-export common use cases for convenient imports in tests.
"""

from .dashboard import DashboardUseCase, compare_children_summary
from .reading import LogReadingSessionUseCase, ReadingSessionInput
from .vocabulary import LearnWordUseCase, LogWordBankUseCase, RecordWordOutcomeUseCase, WordBankInput

__all__ = [
    "DashboardUseCase",
    "LearnWordUseCase",
    "LogReadingSessionUseCase",
    "LogWordBankUseCase",
    "ReadingSessionInput",
    "RecordWordOutcomeUseCase",
    "WordBankInput",
    "compare_children_summary",
]

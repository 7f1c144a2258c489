# Domain Progress Package
from .models import Card, GradeTally, ProgressRecord, ReviewButton, bucket_for_grade
from .ports import CardCatalog, ProgressStore, ProgressUpdate

__all__ = [
    "Card",
    "GradeTally",
    "ProgressRecord",
    "ReviewButton",
    "bucket_for_grade",
    "CardCatalog",
    "ProgressStore",
    "ProgressUpdate",
]

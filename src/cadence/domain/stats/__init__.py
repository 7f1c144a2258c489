# Domain Stats Package
from .models import AccountStats, CardProgress, DeckStats, StudyDay

__all__ = ["AccountStats", "CardProgress", "DeckStats", "StudyDay"]

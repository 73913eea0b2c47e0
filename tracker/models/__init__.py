from tracker.models.company import Company
from tracker.models.opportunity import Opportunity

__all__ = [
    "Company",
    "Opportunity",
]

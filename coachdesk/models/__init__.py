from coachdesk.models.models import (
    Budget,
    BudgetAssignment,
    Customer,
    KnowledgeBaseArticle,
    Lead,
    Meeting,
    NutritionTemplate,
    Payment,
    SavedView,
    User,
    WorkoutTemplate,
)

__all__ = [
    "Budget",
    "BudgetAssignment",
    "Customer",
    "KnowledgeBaseArticle",
    "Lead",
    "Meeting",
    "NutritionTemplate",
    "Payment",
    "SavedView",
    "User",
    "WorkoutTemplate",
]

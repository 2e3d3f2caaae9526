# Re-export all models for convenient imports
from fra_patta.models.user import User, UserRole
from fra_patta.models.patta import Patta
from fra_patta.models.assignment import Assignment, AssignmentStatus, AssignmentPriority
from fra_patta.models.policy import Policy, POLICY_CATEGORIES, DEFAULT_POLICY_CATEGORY

__all__ = [
    "User",
    "UserRole",
    "Patta",
    "Assignment",
    "AssignmentStatus",
    "AssignmentPriority",
    "Policy",
    "POLICY_CATEGORIES",
    "DEFAULT_POLICY_CATEGORY",
]

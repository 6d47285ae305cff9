from .comments import CommentService
from .expenditures import ExpenditureService
from .reactions import REACTION_TYPES, ReactionService

__all__ = ["REACTION_TYPES", "CommentService", "ExpenditureService", "ReactionService"]

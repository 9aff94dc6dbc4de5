from chatrelay.services.context_cache import ContextCache
from chatrelay.services.conversation_pipeline import ConversationPipeline
from chatrelay.services.summarization_engine import SummarizationEngine
from chatrelay.services.token_estimator import TokenEstimator
from chatrelay.services.user_context_store import UserContextStore
from chatrelay.services.user_role_service import UserRoleService

__all__ = [
    "ContextCache",
    "ConversationPipeline",
    "SummarizationEngine",
    "TokenEstimator",
    "UserContextStore",
    "UserRoleService",
]

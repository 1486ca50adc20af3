from enum import Enum


class BusinessType(str, Enum):
    ECOMMERCE = "ecommerce"
    LEAD_GEN = "lead-gen"
    SAAS = "saas"
    LOCAL = "local"


class ReportStatus(str, Enum):
    PENDING = "pending"
    RESEARCHING = "researching"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


class ReportTrigger(str, Enum):
    CLIENT_CREATION = "client_creation"
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class PriorityTier(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ImpactLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class EffortLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecommendationType(str, Enum):
    SEM = "sem"
    SEO = "seo"
    HYBRID = "hybrid"


class SEMActionLevel(str, Enum):
    CAMPAIGN = "campaign"
    AD_GROUP = "ad_group"
    KEYWORD = "keyword"


class SerializationMode(str, Enum):
    FULL = "full"
    COMPACT = "compact"


class CompetitiveDataLevel(str, Enum):
    KEYWORD = "keyword"
    ACCOUNT = "account"


class AgentResultStatus(str, Enum):
    SUCCESS = "success"
    EMPTY = "empty"


class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


# Ordering used for tier sorting: higher value = more urgent.
TIER_RANK: dict[PriorityTier, int] = {
    PriorityTier.CRITICAL: 4,
    PriorityTier.HIGH: 3,
    PriorityTier.MEDIUM: 2,
    PriorityTier.LOW: 1,
}

"""Configuration settings for the job category classifier."""

import os
from pathlib import Path

PACKAGE_DATA_DIR = Path(__file__).parent / "data"
DEFAULT_DICTIONARY_PATH = PACKAGE_DATA_DIR / "dictionary.json"
DEFAULT_RULES_PATH = PACKAGE_DATA_DIR / "taxonomy_rules.json"

# Scoring weights. Confidence thresholds below are calibrated against these values,
# so change them together.
SCORING_WEIGHTS: dict[str, float] = {
    "title": 25,
    "job_labels": 15,
    "description": 3,
    "context_bonus": 12,
    "core_keyword_multiplier": 2.0,
    "support_keyword_multiplier": 1.0,
    "title_keyword_multiplier": 3.0,
}

# Classification thresholds (0-100 score scale)
CONFIDENCE_THRESHOLDS: dict[str, int] = {
    "high": 70,
    "medium": 40,  # Below this, mark as low confidence
    "low": 25,
}
AMBIGUITY_THRESHOLD = 5  # Top two scores within this range are ambiguous
SECONDARY_MIN_SCORE = 30
MAX_SECONDARY_CATEGORIES = 3
HYBRID_MIN_SCORE = 20
HYBRID_STRONG_SCORE = 40

LEADERSHIP_CONFIDENCE = 95
FALLBACK_CONFIDENCE = 25

# Emerging term detection
EMERGING_TERM_THRESHOLD = 3  # Min occurrences across a corpus
MAX_EMERGING_TERMS_PER_JOB = 5
MAX_CORPUS_EMERGING_TERMS = 20

# Feedback learning
LEARNING_CONFIG: dict[str, float | int] = {
    "min_feedback_threshold": 3,
    "auto_apply_threshold": 0.8,
    "min_suggestion_confidence": 0.4,
    "core_keyword_confidence": 0.7,
    "keyword_survival_score": 0.5,
    "max_keywords_per_job": 10,
    "positive_seed_confidence": 0.6,
    "reinforcement_step": 0.1,
    "positive_action_confidence": 0.8,
    "insight_min_confidence": 0.5,
    "insight_min_specificity": 0.4,
}

# Retention caps for the bounded learning logs
RETENTION_LIMITS: dict[str, int] = {
    "feedback": 200,
    "learning_actions": 100,
    "dictionary_updates": 50,
    "pending_proposals": 100,
    "classification_history": 500,
}

# Candidate keyword weights by source field
KEYWORD_SOURCE_WEIGHTS: dict[str, int] = {
    "title": 3,
    "job_labels": 2,
    "description": 1,
    "title_phrase": 4,
}

# Common words to ignore when detecting emerging terms
STOP_WORDS = frozenset({
    "will", "with", "work", "experience", "required", "years", "including",
    "strong", "knowledge", "skills", "ability", "responsibilities", "duties",
    "position", "role", "candidate", "must", "should", "working", "team",
    "responsible", "support", "develop", "ensure", "provide", "manage",
    "coordinate", "implement", "contribute", "assist", "participate",
    "relevant", "appropriate", "effective", "efficient", "successful",
    "international", "national", "regional", "local", "global", "country",
    "organization", "agency", "department", "office", "unit", "project",
    "program", "initiative", "activity", "task", "assignment", "mission",
    # Generic keywords that appear in almost every posting
    "research", "analysis", "analytical", "management", "administration",
    "development", "implementation", "coordination", "planning",
    "monitoring", "evaluation", "assessment", "review", "technical", "operational",
    "strategic", "policies", "procedures", "guidelines", "standards",
    "systems", "system", "processes", "process", "solutions", "solution",
    "approaches", "approach", "methods", "method", "tools", "tool",
    "resources", "resource", "materials", "material", "studies",
    "university", "universities", "academic", "report",
    "and", "the", "for", "are", "our", "this", "that", "from", "have", "has",
})

# Generic keywords that must never be learned into a category
FORBIDDEN_LEARNING_KEYWORDS = frozenset({
    "research", "management", "administration", "support", "development",
    "analysis", "coordination", "planning", "monitoring", "evaluation",
    "assessment", "implementation", "technical", "operational", "strategic",
    "university", "academic", "software", "system", "digital", "data",
    "report", "policy", "governance", "communication", "training",
    "health", "education", "security", "finance", "legal", "operations",
})

# Environment-driven settings
DATA_DIR = Path(os.getenv("JOB_CLASSIFIER_DATA_DIR", ".job_classifier"))
DICTIONARY_PATH_OVERRIDE = os.getenv("JOB_CLASSIFIER_DICTIONARY")
DEFAULT_WORKERS = int(os.getenv("JOB_CLASSIFIER_WORKERS", "0")) or None

# Logging configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVEL = os.getenv("JOB_CLASSIFIER_LOG_LEVEL", "INFO")

"""Turns human feedback into scored keyword candidates and dictionary suggestions."""

import logging

from ..config import KEYWORD_SOURCE_WEIGHTS, LEARNING_CONFIG
from ..models.audit import LearningActionType
from ..models.category import Category, ContextPair
from ..models.feedback import DictionaryUpdateSuggestion, FeedbackRecord, SuggestionAction
from ..models.rules import TaxonomyRules
from ..utils.text import (
    consecutive_pairs,
    is_valid_keyword,
    is_valid_phrase,
    substring_match,
    word_tokens,
)
from .audit_manager import AuditManager
from .feedback_manager import FeedbackManager

logger = logging.getLogger(__name__)


def _summarize(keywords: list[str], shown: int) -> str:
    summary = ", ".join(keywords[:shown])
    if len(keywords) > shown:
        summary += f" (+{len(keywords) - shown} more)"
    return summary


class FeedbackProcessor:
    """Extracts keywords from feedback and proposes dictionary changes.

    Keyword candidates come from the title, labels and description, plus
    two-word phrases from the title. Each candidate is scored for how
    specific it is to the target category, using the curated domain tables
    and how selectively it shows up in that category's feedback history.
    """

    def __init__(
        self,
        feedback_manager: FeedbackManager,
        audit_manager: AuditManager,
        rules: TaxonomyRules,
    ) -> None:
        self.feedback_manager = feedback_manager
        self.audit_manager = audit_manager
        self.rules = rules

    def calculate_category_specificity(self, keyword: str, category_id: str) -> float:
        """How strongly a keyword points at one category's domain.

        Args:
            keyword: Candidate keyword or phrase
            category_id: Target category

        Returns:
            0.9 for an exact domain term, 0.6 for a partial match, 0.1 when it
            belongs to another domain, 0.3 otherwise

        """
        keyword_lower = keyword.lower()
        specific_terms = self.rules.domain_terms.get(category_id, ())

        if keyword_lower in specific_terms:
            return 0.9

        if any(substring_match(keyword_lower, term) for term in specific_terms):
            return 0.6

        for other_id, terms in self.rules.domain_terms.items():
            if other_id == category_id:
                continue
            if any(substring_match(keyword_lower, term) for term in terms):
                return 0.1

        return 0.3

    def score_keyword_relevance(
        self, keyword: str, category: Category | None, record: FeedbackRecord
    ) -> float:
        """Relevance of a candidate keyword to the record's target category (0-1)."""
        if category is None:
            return 0.0

        keyword_lower = keyword.lower()
        score = 0.1

        if keyword_lower in record.job_title.lower():
            score += 0.6

        if keyword_lower in category.related_terms():
            score += 0.4

        score += self.calculate_category_specificity(keyword, category.id) * 0.5

        usage = self.feedback_manager.keyword_usage(category.id, keyword)
        if usage["category_total"] > 0:
            selectivity = usage["category_rate"] - usage["other_rate"]
            score += max(0.0, selectivity) * 0.4

        # Generic terms show up across many categories
        if usage["in_others"] > usage["in_category"] * 2:
            score *= 0.5

        return min(score, 1.0)

    def extract_keywords(self, record: FeedbackRecord, category: Category | None) -> list[str]:
        """Extract the most category-relevant keywords from a feedback record.

        Args:
            record: Feedback record with the job text
            category: Target category (None yields no keywords)

        Returns:
            Up to ``max_keywords_per_job`` keywords, best first

        """
        title = record.job_title.lower()
        candidates: dict[str, int] = {}

        sources = (
            (word_tokens(title), KEYWORD_SOURCE_WEIGHTS["title"]),
            (word_tokens(record.job_labels), KEYWORD_SOURCE_WEIGHTS["job_labels"]),
            (word_tokens(record.job_description), KEYWORD_SOURCE_WEIGHTS["description"]),
        )
        for words, weight in sources:
            for word in words:
                if is_valid_keyword(word):
                    candidates[word] = candidates.get(word, 0) + weight

        title_words = [w for w in title.split() if len(w) > 2]
        for first, second in consecutive_pairs(title_words):
            phrase = f"{first} {second}"
            if is_valid_phrase(phrase):
                candidates[phrase] = candidates.get(phrase, 0) + KEYWORD_SOURCE_WEIGHTS["title_phrase"]

        scored = [
            (keyword, self.score_keyword_relevance(keyword, category, record) * frequency)
            for keyword, frequency in candidates.items()
        ]
        survivors = [
            item for item in scored if item[1] > float(LEARNING_CONFIG["keyword_survival_score"])
        ]
        survivors.sort(key=lambda item: item[1], reverse=True)

        return [keyword for keyword, _ in survivors[: int(LEARNING_CONFIG["max_keywords_per_job"])]]

    def is_domain_pair(self, pair_text: str, category_id: str) -> bool:
        """Check a two-word phrase against the category's curated pair list."""
        return any(
            substring_match(pair_text, specific)
            for specific in self.rules.domain_pairs.get(category_id, ())
        )

    def extract_context_pairs(
        self, record: FeedbackRecord, category: Category | None
    ) -> list[ContextPair]:
        """Category-specific word pairs from the title and labels.

        A pair qualifies when at least one of its words relates to the
        category's existing keywords and the pair matches a curated domain
        phrase for the category.
        """
        if category is None:
            return []

        related = category.related_terms()
        pairs: list[ContextPair] = []
        for text in (record.job_title, record.job_labels):
            words = word_tokens(text, min_length=1)
            for first, second in consecutive_pairs(words):
                if not (is_valid_keyword(first) and is_valid_keyword(second)):
                    continue
                first_related = any(substring_match(first, k) for k in related)
                second_related = any(substring_match(second, k) for k in related)
                if not (first_related or second_related):
                    continue
                if self.is_domain_pair(f"{first} {second}", category.id):
                    pairs.append((first, second))
        return pairs

    def process_positive(
        self, record: FeedbackRecord, keywords: list[str]
    ) -> list[DictionaryUpdateSuggestion]:
        """Reinforce the keywords of a confirmed classification.

        Never proposes a dictionary change.
        """
        category_id = record.final_primary or record.original_primary
        for keyword in keywords:
            self.feedback_manager.reinforce_pattern(category_id, keyword)

        self.audit_manager.log_action(
            LearningActionType.POSITIVE_REINFORCEMENT,
            category_id,
            f"Reinforced keywords: {_summarize(keywords, 5)}",
            float(LEARNING_CONFIG["positive_action_confidence"]),
            supporting_jobs=[record.job_id],
        )
        return []

    def process_correction(
        self, record: FeedbackRecord, keywords: list[str], category: Category | None
    ) -> list[DictionaryUpdateSuggestion]:
        """Propose keyword and context-pair additions for a corrected category.

        Args:
            record: Correction feedback (already in the history)
            keywords: Keywords extracted from the record
            category: The corrected category

        Returns:
            Suggestions above the minimum confidence

        """
        category_id = record.corrected_primary or ""
        min_support = int(LEARNING_CONFIG["min_feedback_threshold"])
        suggestions: list[DictionaryUpdateSuggestion] = []

        for keyword in keywords:
            supporting = self.feedback_manager.find_jobs_with_keyword(category_id, keyword)
            if len(supporting) < min_support:
                continue
            confidence = min(len(supporting) / 10, 1.0)
            action = (
                SuggestionAction.ADD_CORE_KEYWORD
                if confidence > float(LEARNING_CONFIG["core_keyword_confidence"])
                else SuggestionAction.ADD_SUPPORT_KEYWORD
            )
            suggestions.append(DictionaryUpdateSuggestion(
                category_id=category_id,
                action=action,
                keyword=keyword,
                confidence=confidence,
                supporting_feedback=[f.job_id for f in supporting],
                frequency=len(supporting),
            ))

        for first, second in self.extract_context_pairs(record, category):
            supporting = self.feedback_manager.find_jobs_with_context_pair(
                category_id, first, second
            )
            if len(supporting) < min_support:
                continue
            suggestions.append(DictionaryUpdateSuggestion(
                category_id=category_id,
                action=SuggestionAction.ADD_CONTEXT_PAIR,
                keyword=f"{first} + {second}",
                confidence=min(len(supporting) / 5, 1.0),
                supporting_feedback=[f.job_id for f in supporting],
                frequency=len(supporting),
                context_pair=(first, second),
            ))

        if suggestions:
            count = len(suggestions)
            self.audit_manager.log_action(
                LearningActionType.PATTERN_RECOGNITION,
                category_id,
                f"Extracted keywords: {_summarize(keywords, 3)} → "
                f"{count} pattern{'s' if count > 1 else ''} identified",
                max(s.confidence for s in suggestions),
                supporting_jobs=[record.job_id],
            )
            logger.info(f"🔎 {count} candidate update(s) for {category_id} from job {record.job_id}")

        min_confidence = float(LEARNING_CONFIG["min_suggestion_confidence"])
        return [s for s in suggestions if s.confidence > min_confidence]

"""
Append-only activity, feedback and analytics records.

Every write here is best effort: a storage failure is logged and swallowed
so that bookkeeping can never break routing or triage.
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from models.data_models import (
    ActivityRecord,
    AnalyticsCounters,
    FeedbackRecord,
    RoutingSuggestions,
    TriageActivityRecord,
    TriageResult,
    UserAction,
)
from models.routing_config import RoutingConfiguration
from storage.kv_store import (
    TRIAGE_COUNTERS_KEY,
    KeyValueStore,
    activity_key,
    feedback_key,
    triage_activity_key,
    user_action_key,
)

logger = logging.getLogger(__name__)

TIMEFRAMES = {"1d": 1, "7d": 7, "30d": 30}
HISTORY_PREFIXES = ("activity:", "triage-activity:", "user_action:", "feedback:")
SCAN_LIMIT = 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ActivityLogger:
    """Writes and aggregates activity records in the key-value store."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def log_routing_activity(
        self,
        issue_key: str,
        suggestions: RoutingSuggestions,
        config: RoutingConfiguration,
        triage: Optional[TriageResult] = None,
    ) -> None:
        try:
            record = ActivityRecord(
                issue_key=issue_key,
                suggestions=suggestions,
                config={
                    "model": config.selected_model,
                    "autoAssign": config.auto_assign,
                    "autoSetPriority": config.auto_set_priority,
                    "enableTriage": config.enable_triage,
                },
                triage=triage.summary() if triage else None,
            )
            self.store.set(activity_key(issue_key, _now_ms()), record.to_record())
            logger.debug(f"Logged routing activity for {issue_key}")
        except Exception as e:
            logger.error(f"Error logging routing activity for {issue_key}: {e}")

    def log_triage_activity(
        self,
        issue_key: str,
        triage: TriageResult,
        applied_updates: List[str],
    ) -> None:
        """Store one triage record and bump the aggregate counters."""
        try:
            record = TriageActivityRecord(
                issue_key=issue_key,
                triage_results={
                    "category": triage.categorization.type,
                    "priority": triage.priority.level,
                    "sentiment": triage.sentiment.tone,
                    "escalationRisk": triage.sentiment.escalation_risk,
                    "urgency": triage.urgency.level,
                    "confidence": triage.confidence,
                },
                applied_updates=list(applied_updates),
                recommendations=[r.type for r in triage.recommendations],
            )
            self.store.set(triage_activity_key(issue_key, _now_ms()), record.to_record())
            self.update_analytics_counters(triage)
            logger.info(f"Logged triage activity for {issue_key} (applied: {', '.join(applied_updates) or 'none'})")
        except Exception as e:
            logger.error(f"Error logging triage activity for {issue_key}: {e}")

    def log_user_action(self, issue_key: str, action: str, data: Optional[Dict[str, Any]] = None) -> None:
        try:
            record = UserAction(issue_key=issue_key, action=action, data=data or {})
            self.store.set(user_action_key(issue_key, action, _now_ms()), record.to_record())
        except Exception as e:
            logger.error(f"Error logging user action {action} for {issue_key}: {e}")

    def record_feedback(
        self,
        issue_key: str,
        suggestion_type: str,
        feedback: str,
        suggestion: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> FeedbackRecord:
        """
        Store feedback on a suggestion and log it as a user action.

        Unlike the other writes this one raises on storage failure, so the
        caller can tell the user their feedback was not recorded.
        """
        record = FeedbackRecord(
            issue_key=issue_key,
            suggestion_type=suggestion_type,
            suggestion=suggestion or {},
            feedback=feedback,
            user_id=user_id,
        )
        self.store.set(feedback_key(issue_key, suggestion_type, _now_ms()), record.to_record())
        self.log_user_action(
            issue_key,
            "provide_feedback",
            {"suggestionType": suggestion_type, "feedback": record.feedback},
        )
        logger.info(f"Recorded {record.feedback} feedback on {suggestion_type} suggestion for {issue_key}")
        return record

    def update_analytics_counters(self, triage: TriageResult) -> None:
        try:
            counters = AnalyticsCounters.model_validate(self.store.get(TRIAGE_COUNTERS_KEY) or {})
            counters.total_triaged += 1
            for bucket, value in (
                (counters.by_category, triage.categorization.type),
                (counters.by_priority, triage.priority.level),
                (counters.by_sentiment, triage.sentiment.tone),
                (counters.by_urgency, triage.urgency.level),
            ):
                bucket[value] = bucket.get(value, 0) + 1
            counters.last_updated = datetime.now(timezone.utc).isoformat()
            self.store.set(TRIAGE_COUNTERS_KEY, counters.to_record())
        except Exception as e:
            logger.error(f"Error updating analytics counters: {e}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_recent_activity(self, issue_key: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Routing activity for one issue, newest first."""
        try:
            rows = self.store.query(f"activity:{issue_key}:", limit=limit)
        except Exception as e:
            logger.error(f"Error getting recent activity for {issue_key}: {e}")
            return []
        activities = [value for _, value in rows if isinstance(value, dict)]
        return sorted(activities, key=lambda a: a.get("timestamp", ""), reverse=True)

    def get_triage_counters(self) -> Dict[str, Any]:
        stored = self.store.get(TRIAGE_COUNTERS_KEY)
        return AnalyticsCounters.model_validate(stored or {}).to_record()

    def get_recent_triage_activity(self, limit: int = 20) -> List[Dict[str, Any]]:
        try:
            rows = self.store.query("triage-activity:", limit=SCAN_LIMIT)
        except Exception as e:
            logger.error(f"Error getting recent triage activity: {e}")
            return []
        activities = [value for _, value in rows if isinstance(value, dict)]
        activities.sort(key=lambda a: a.get("timestamp", ""), reverse=True)
        return activities[:limit]

    def get_triage_stats_summary(self, timeframe: str = "7d") -> Dict[str, Any]:
        """
        Aggregate triage activity over a window of 1d, 7d or 30d.

        Unknown timeframes are treated as 7d.
        """
        days = TIMEFRAMES.get(timeframe, 7)
        now = datetime.now(timezone.utc)
        cutoff = now - timedelta(days=days)

        activities = []
        for _, value in self.store.query("triage-activity:", limit=SCAN_LIMIT):
            if not isinstance(value, dict):
                continue
            stamp = _parse_timestamp(value.get("timestamp"))
            if stamp and stamp >= cutoff:
                activities.append(value)

        stats: Dict[str, Any] = {
            "totalTriaged": len(activities),
            "averageConfidence": 0.0,
            "escalationRiskCount": 0,
            "criticalPriorityCount": 0,
            "negativeSentimentCount": 0,
            "immediateUrgencyCount": 0,
            "topCategories": {},
            "timeframe": timeframe,
            "generatedAt": now.isoformat(),
        }
        if not activities:
            return stats

        confidence_sum = 0.0
        for activity in activities:
            triage = activity.get("triageResults") or {}
            confidence_sum += triage.get("confidence") or 0
            if triage.get("sentiment") == "negative":
                stats["negativeSentimentCount"] += 1
            if triage.get("priority") == "critical":
                stats["criticalPriorityCount"] += 1
            if triage.get("urgency") == "immediate":
                stats["immediateUrgencyCount"] += 1
            if triage.get("escalationRisk") in ("high", "critical"):
                stats["escalationRiskCount"] += 1
            category = triage.get("category") or "unknown"
            stats["topCategories"][category] = stats["topCategories"].get(category, 0) + 1

        stats["averageConfidence"] = round(confidence_sum / len(activities), 2)
        return stats

    def get_analytics(self) -> Dict[str, Any]:
        """Suggestion acceptance and feedback tallies for the admin dashboard."""
        try:
            activities = self.store.query("activity:", limit=100)
            actions = self.store.query("user_action:", limit=100)
            feedback = self.store.query("feedback:", limit=SCAN_LIMIT)
        except Exception as e:
            logger.error(f"Error getting analytics: {e}")
            return {"error": "Failed to load analytics"}

        accepted = [
            value for _, value in actions
            if isinstance(value, dict)
            and "apply_" in value.get("action", "")
            and "suggestion" in value.get("action", "")
        ]
        tallies = {"positive": 0, "negative": 0, "neutral": 0}
        for _, value in feedback:
            kind = value.get("feedback") if isinstance(value, dict) else None
            if kind in tallies:
                tallies[kind] += 1

        total = len(activities)
        return {
            "totalSuggestions": total,
            "acceptedSuggestions": len(accepted),
            "acceptanceRate": round(len(accepted) / total * 100, 1) if total else 0.0,
            "feedback": tallies,
        }

    def purge_expired(self, retention_days: int) -> int:
        """
        Delete history records older than the retention window.

        Every record under each history prefix is visited, one page of
        SCAN_LIMIT at a time. Deleted records shift later ones forward, so
        the offset only advances past the records that were kept.

        Returns:
            Number of records removed
        """
        cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
        removed = 0
        for prefix in HISTORY_PREFIXES:
            offset = 0
            while True:
                page = self.store.query(prefix, limit=SCAN_LIMIT, offset=offset)
                for key, value in page:
                    stamp = _parse_timestamp(value.get("timestamp")) if isinstance(value, dict) else None
                    if stamp and stamp < cutoff:
                        self.store.delete(key)
                        removed += 1
                    else:
                        offset += 1
                if len(page) < SCAN_LIMIT:
                    break
        logger.info(f"✓ Purged {removed} records older than {retention_days} days")
        return removed

"""
Anti-abuse engine.

The engine is the single integration point for the voting and ranking
systems. It ingests vote events, keeps per-user activity state and the shared
co-voting graph, runs the detectors, maintains credibility scores and records
threat alerts.

Concurrency model:
- events for one user are applied under that user's lock;
- graph writes are serialised by the graph's own lock;
- collusion detection traverses a snapshot of the graph, so concurrent
  ingestion never produces a torn traversal;
- locks are always taken in the order user -> index/graph/alerts, and no user
  lock is acquired while the collusion cache lock is held.
"""

import threading
import time
from typing import Callable, Dict, List, Optional

from ..errors.exceptions import ValidationError
from ..logging import LogContext, get_logger
from .alerts import AlertManager, AlertType, ThreatAlert
from .core import (
    AntiAbuseConfig,
    BotDetectionResult,
    CollusionDetectionResult,
    UserCredibilityScore,
    VoteEvent,
)
from .credibility import DEFAULT_TRUST_SCORE, CredibilityAggregator
from .detectors import BotDetector, CollusionDetector
from .graph import CoVotingGraph
from .report import SecurityScanReport
from .state import UserState, UserStateStore

logger = get_logger(__name__)

COMPONENT = "antiabuse.engine"


def _ctx(operation: str, user_id: Optional[str] = None, **metadata) -> LogContext:
    return LogContext(
        component=COMPONENT, operation=operation, user_id=user_id, metadata=metadata
    )


class AntiAbuseEngine:
    """Bot, collusion and credibility analysis over a stream of vote events."""

    def __init__(
        self,
        config: Optional[AntiAbuseConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize anti-abuse engine."""
        self.config = config or AntiAbuseConfig()
        self.config.validate()
        self._clock = clock

        self._users = UserStateStore(self.config.window_seconds)
        self._graph = CoVotingGraph()
        self._ip_index: Dict[str, List[str]] = {}
        self._device_index: Dict[str, List[str]] = {}
        self._index_lock = threading.Lock()

        self.bot_detector = BotDetector(self.config)
        self.collusion_detector = CollusionDetector(self.config)
        self.aggregator = CredibilityAggregator()
        self.alerts = AlertManager()

        self._collusion_results: List[CollusionDetectionResult] = []
        self._collusion_lock = threading.RLock()

        self._last_scan: Optional[SecurityScanReport] = None
        self._last_scan_at: Optional[float] = None
        self._scan_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def record_vote_event(self, event: VoteEvent) -> None:
        """Ingest one accepted vote.

        Duplicate event ids for the same user are ignored. A repeated
        (user, proposal) pair still counts as activity but never adds co-vote
        weight.
        """
        if not isinstance(event, VoteEvent):
            raise ValidationError(
                "record_vote_event expects a VoteEvent",
                field="event",
                value=type(event).__name__,
                expected="VoteEvent",
            )

        state = self._users.get_or_create(event.user_id)
        with state.lock:
            if event.event_id in state.seen_event_ids:
                logger.debug(
                    f"Duplicate event {event.event_id} ignored",
                    context=_ctx("record_vote_event", event.user_id),
                )
                return

            state.seen_event_ids.add(event.event_id)
            state.history.append(event)
            state.total_votes += 1
            state.prune_history(self.config.history_retention_seconds)
            state.window.add_event(event.timestamp)

            if event.ip_hash:
                state.ip_hashes.add(event.ip_hash)
            if event.device_hash:
                state.device_hashes.add(event.device_hash)
            if state.credibility is not None:
                state.credibility_dirty = True

            self._index_identity(event)
            self._graph.add_vote(event.user_id, event.proposal_id)
            self._update_bot_detection(state)

        logger.debug(
            f"Recorded vote on {event.proposal_id}",
            context=_ctx("record_vote_event", event.user_id),
            extra={"event_id": event.event_id},
        )

    def record_vote(
        self,
        user_id: str,
        proposal_id: str,
        timestamp: Optional[float] = None,
        ip_hash: Optional[str] = None,
        device_hash: Optional[str] = None,
    ) -> VoteEvent:
        """Build a ``VoteEvent`` with a fresh id and ingest it."""
        event = VoteEvent(
            user_id=user_id,
            proposal_id=proposal_id,
            timestamp=self._clock() if timestamp is None else timestamp,
            ip_hash=ip_hash,
            device_hash=device_hash,
        )
        self.record_vote_event(event)
        return event

    def _index_identity(self, event: VoteEvent) -> None:
        with self._index_lock:
            for index, token in (
                (self._ip_index, event.ip_hash),
                (self._device_index, event.device_hash),
            ):
                if not token:
                    continue
                users = index.setdefault(token, [])
                if event.user_id not in users:
                    users.append(event.user_id)

    # ------------------------------------------------------------------
    # Bot detection
    # ------------------------------------------------------------------

    def _update_bot_detection(self, state: UserState) -> BotDetectionResult:
        """Recompute and cache a user's bot result. Caller holds ``state.lock``."""
        result = self.bot_detector.evaluate(
            state.user_id,
            state.window,
            device_count=len(state.device_hashes),
            ip_count=len(state.ip_hashes),
            total_votes=state.total_votes,
        )
        state.bot_result = result

        if self.bot_detector.should_alert(result):
            if not self.alerts.has_open_alert(AlertType.BOT_DETECTED, state.user_id):
                alert = self.alerts.raise_alert(
                    AlertType.BOT_DETECTED,
                    result.bot_likelihood,
                    [state.user_id],
                    result.reason,
                )
                logger.warning(
                    f"Bot behaviour detected: {result.reason}",
                    context=_ctx("detect_bot", state.user_id),
                    extra={
                        "alert_id": alert.alert_id,
                        "bot_likelihood": round(result.bot_likelihood, 3),
                    },
                )
            state.mark_suspicious(result.reason or AlertType.BOT_DETECTED.value)

        return result

    def detect_bot(self, user_id: str) -> BotDetectionResult:
        """Cached bot result, computed on first request for a known user."""
        state = self._users.get(user_id)
        if state is None:
            return BotDetectionResult(user_id=user_id)
        with state.lock:
            if state.bot_result is None:
                return self._update_bot_detection(state)
            return state.bot_result

    def get_bot_result(self, user_id: str) -> BotDetectionResult:
        return self.detect_bot(user_id)

    def get_all_suspicious_bots(self) -> List[BotDetectionResult]:
        """Suspicious users, most bot-like first."""
        results = [self.detect_bot(user_id) for user_id in self._users.user_ids()]
        suspicious = [result for result in results if result.is_suspicious]
        return sorted(suspicious, key=lambda r: (-r.bot_likelihood, r.user_id))

    # ------------------------------------------------------------------
    # Collusion detection
    # ------------------------------------------------------------------

    def detect_collusion(self) -> List[CollusionDetectionResult]:
        """Run the batch collusion pass and replace the cached groups."""
        snapshot = self._graph.snapshot()
        results = self.collusion_detector.analyze(snapshot)

        with self._collusion_lock:
            self._collusion_results = results

        suspicious = [result for result in results if result.is_suspicious]
        for result in suspicious:
            alert = self.alerts.raise_alert(
                AlertType.COLLUSION_DETECTED,
                result.collusion_score,
                result.user_group,
                result.description,
            )
            logger.warning(
                f"Collusion detected: {result.description}",
                context=_ctx("detect_collusion"),
                extra={
                    "alert_id": alert.alert_id,
                    "collusion_score": round(result.collusion_score, 3),
                },
            )
            for user_id in result.user_group:
                self.mark_user_suspicious(user_id, "Part of collusion group")

        logger.info(
            f"Collusion pass found {len(results)} groups, {len(suspicious)} suspicious",
            context=_ctx("detect_collusion"),
            extra={"graph_edges": self._graph.get_edge_count()},
        )
        return list(results)

    def get_collusion_groups(self) -> List[CollusionDetectionResult]:
        """Groups from the most recent collusion pass."""
        with self._collusion_lock:
            return list(self._collusion_results)

    # ------------------------------------------------------------------
    # Credibility
    # ------------------------------------------------------------------

    def _compute_credibility(self, state: UserState) -> UserCredibilityScore:
        """Caller holds ``state.lock``."""
        bot_result = state.bot_result or self._update_bot_detection(state)
        score = self.aggregator.compute(
            state.user_id,
            bot_result,
            self.get_collusion_groups(),
            device_count=len(state.device_hashes),
            total_votes=state.total_votes,
        )
        state.credibility = score
        state.credibility_dirty = False
        return score

    def get_credibility(self, user_id: str) -> UserCredibilityScore:
        """Credibility record, recomputed when missing or stale.

        Unknown users get a neutral record that is not cached.
        """
        state = self._users.get(user_id)
        if state is None:
            return UserCredibilityScore(user_id=user_id, trust_score=DEFAULT_TRUST_SCORE)
        with state.lock:
            if state.credibility is None or state.credibility_dirty:
                return self._compute_credibility(state)
            return state.credibility

    def calculate_user_credibility(self, user_id: str) -> UserCredibilityScore:
        """Force a fresh credibility computation for one known user."""
        state = self._users.get(user_id)
        if state is None:
            return UserCredibilityScore(user_id=user_id, trust_score=DEFAULT_TRUST_SCORE)
        with state.lock:
            return self._compute_credibility(state)

    def calculate_all_credibility_scores(self) -> Dict[str, UserCredibilityScore]:
        """Bulk recompute: collusion pass first, then every known user."""
        self.detect_collusion()
        scores = {}
        for state in self._users.states():
            with state.lock:
                scores[state.user_id] = self._compute_credibility(state)
        logger.info(
            f"Recomputed credibility for {len(scores)} users",
            context=_ctx("calculate_all_credibility_scores"),
        )
        return scores

    def get_trust_score(self, user_id: str) -> float:
        """Cached trust score, or 0.5 when none has been computed yet.

        Scores are not refreshed per vote; a cached score may lag behind the
        newest events until the next credibility computation.
        """
        state = self._users.get(user_id)
        if state is None:
            return DEFAULT_TRUST_SCORE
        with state.lock:
            if state.credibility is None:
                return DEFAULT_TRUST_SCORE
            return state.credibility.trust_score

    # ------------------------------------------------------------------
    # Suspicion flags and alerts
    # ------------------------------------------------------------------

    def mark_user_suspicious(self, user_id: str, reason: str) -> None:
        """Flag a user. The flag is sticky until the user is reset."""
        state = self._users.get_or_create(user_id)
        with state.lock:
            state.mark_suspicious(reason)

    def is_user_suspicious(self, user_id: str) -> bool:
        state = self._users.get(user_id)
        return state is not None and state.suspicious

    def get_suspicious_users(self) -> List[str]:
        return [state.user_id for state in self._users.states() if state.suspicious]

    def get_alerts(self, unresolved_only: bool = False) -> List[ThreatAlert]:
        return self.alerts.list(unresolved_only)

    def resolve_alert(self, alert_id: str) -> bool:
        resolved = self.alerts.resolve(alert_id)
        if resolved:
            logger.info(f"Alert {alert_id} resolved", context=_ctx("resolve_alert"))
        else:
            logger.warning(
                f"Cannot resolve unknown alert {alert_id}", context=_ctx("resolve_alert")
            )
        return resolved

    # ------------------------------------------------------------------
    # Identity and activity queries
    # ------------------------------------------------------------------

    def get_vote_count_in_window(
        self, user_id: str, window_seconds: float, now: Optional[float] = None
    ) -> int:
        """Votes in the user's history at or after ``now - window_seconds``."""
        state = self._users.get(user_id)
        if state is None:
            return 0
        cutoff = (self._clock() if now is None else now) - window_seconds
        with state.lock:
            return sum(1 for event in state.history if event.timestamp >= cutoff)

    def get_vote_history(self, user_id: str) -> List[VoteEvent]:
        state = self._users.get(user_id)
        if state is None:
            return []
        with state.lock:
            return list(state.history)

    def get_users_with_same_ip(self, ip_hash: str) -> List[str]:
        with self._index_lock:
            return sorted(self._ip_index.get(ip_hash, ()))

    def get_users_with_same_device(self, device_hash: str) -> List[str]:
        with self._index_lock:
            return sorted(self._device_index.get(device_hash, ()))

    def get_co_vote_count(self, user_a: str, user_b: str) -> int:
        return self._graph.get_co_vote_count(user_a, user_b)

    @property
    def graph(self) -> CoVotingGraph:
        return self._graph

    # ------------------------------------------------------------------
    # Scans, statistics and configuration
    # ------------------------------------------------------------------

    def perform_security_scan(self, force: bool = False) -> SecurityScanReport:
        """Full bot + collusion + credibility pass.

        Within ``min_scan_interval_seconds`` of the previous scan the previous
        report is returned instead, unless ``force`` is set.
        """
        with self._scan_lock:
            now = time.monotonic()
            interval = self.config.min_scan_interval_seconds
            if (
                not force
                and self._last_scan is not None
                and now - self._last_scan_at < interval
            ):
                logger.debug(
                    "Security scan skipped, previous report still fresh",
                    context=_ctx("perform_security_scan"),
                )
                return self._last_scan

            started = time.perf_counter()
            bots = self.get_all_suspicious_bots()
            scores = self.calculate_all_credibility_scores()
            report = SecurityScanReport(
                suspicious_bots=bots,
                collusion_groups=self.get_collusion_groups(),
                unresolved_alerts=self.get_alerts(unresolved_only=True),
                users_scored=len(scores),
                duration_seconds=time.perf_counter() - started,
            )
            self._last_scan = report
            self._last_scan_at = now

        logger.info(
            f"Security scan: {len(report.suspicious_bots)} suspicious users, "
            f"{len(report.suspicious_groups)} suspicious groups, "
            f"{len(report.unresolved_alerts)} open alerts",
            context=_ctx("perform_security_scan"),
        )
        return report

    def get_security_statistics(self) -> Dict[str, object]:
        with self._collusion_lock:
            groups = list(self._collusion_results)
        return {
            "total_users": len(self._users),
            "suspicious_users": len(self.get_suspicious_users()),
            "total_alerts": self.alerts.count(),
            "unresolved_alerts": self.alerts.count(unresolved_only=True),
            "alert_counts": self.alerts.counts_by_type(),
            "graph_edges": self._graph.get_edge_count(),
            "collusion_groups": len(groups),
            "suspicious_groups": sum(1 for group in groups if group.is_suspicious),
            "configuration": self.get_configuration(),
        }

    def configure_thresholds(
        self,
        velocity_threshold: float,
        gap_threshold_ms: float,
        collusion_threshold: float,
        bot_likelihood_threshold: float,
    ) -> None:
        """Retune detection sensitivity.

        Raises ``ConfigurationError`` and keeps the current settings when any
        value is out of range.
        """
        new_config = self.config.with_thresholds(
            velocity_threshold,
            gap_threshold_ms,
            collusion_threshold,
            bot_likelihood_threshold,
        )
        self.config = new_config
        self.bot_detector.update_config(new_config)
        self.collusion_detector.update_config(new_config)
        logger.info(
            "Detection thresholds updated",
            context=_ctx("configure_thresholds"),
            extra={
                "velocity_threshold": velocity_threshold,
                "gap_threshold_ms": gap_threshold_ms,
                "collusion_threshold": collusion_threshold,
                "bot_likelihood_threshold": bot_likelihood_threshold,
            },
        )

    def get_configuration(self) -> Dict[str, object]:
        return self.config.to_dict()

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Drop all state, alerts included."""
        self._users.clear()
        self._graph.clear()
        with self._index_lock:
            self._ip_index.clear()
            self._device_index.clear()
        with self._collusion_lock:
            self._collusion_results = []
        self.alerts.clear()
        with self._scan_lock:
            self._last_scan = None
            self._last_scan_at = None
        logger.info("Engine state cleared", context=_ctx("reset"))

    def reset_user(self, user_id: str) -> bool:
        """Forget one user (account deletion). Alerts naming the user are kept."""
        state = self._users.remove(user_id)
        self._graph.remove_user(user_id)
        with self._index_lock:
            for index in (self._ip_index, self._device_index):
                for token in list(index):
                    users = index[token]
                    if user_id in users:
                        users.remove(user_id)
                    if not users:
                        del index[token]
        with self._collusion_lock:
            self._collusion_results = [
                group
                for group in self._collusion_results
                if user_id not in group.user_group
            ]

        logger.info("User state cleared", context=_ctx("reset_user", user_id))
        return state is not None

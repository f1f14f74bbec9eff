"""
Anti-abuse engine demonstration.

This script feeds synthetic vote traffic through the engine: a scripted bot,
a colluding voter ring and a handful of ordinary users. It then runs a full
security scan and prints trust scores and alerts.
"""

import random
import sys
import time
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from crowdguard.antiabuse import AntiAbuseConfig, AntiAbuseEngine
from crowdguard.logging import LogConfig, LogLevel, get_logger, setup_logging

logger = get_logger("crowdguard.examples.anti_abuse_demo")


def print_section(title: str):
    """Print a section header."""
    logger.info(f"\n{'='*60}")
    logger.info(f"🎯 {title}")
    logger.info('='*60)


def simulate_bot(engine: AntiAbuseEngine, start: float):
    """One account voting every 80ms from a single device and IP."""
    print_section("Scripted Bot")

    for i in range(60):
        engine.record_vote(
            "bot_7f3a",
            f"prop_{i}",
            timestamp=start + i * 0.08,
            ip_hash="ip_datacenter",
            device_hash="device_headless",
        )

    result = engine.get_bot_result("bot_7f3a")
    logger.info(f"Bot likelihood: {result.bot_likelihood:.2f}")
    logger.info(f"Velocity: {result.voting_velocity:.1f} votes/min")
    logger.info(f"Average gap: {result.avg_inter_vote_gap_ms:.0f}ms")
    logger.info(f"Reason: {result.reason}")


def simulate_ring(engine: AntiAbuseEngine, start: float):
    """Four accounts upvoting the same twelve proposals."""
    print_section("Voting Ring")

    ring = ["ring_a", "ring_b", "ring_c", "ring_d"]
    timestamp = start
    for i in range(12):
        for member in ring:
            engine.record_vote(member, f"ring_prop_{i}", timestamp=timestamp)
            timestamp += 45.0

    for group in engine.detect_collusion():
        logger.info(
            f"Group {group.user_group}: score {group.collusion_score:.2f}, "
            f"density {group.density:.2f}, suspicious={group.is_suspicious}"
        )


def simulate_humans(engine: AntiAbuseEngine, start: float, rng: random.Random):
    """Ordinary users voting at human pace on a shared pool of proposals."""
    print_section("Ordinary Users")

    for n in range(8):
        user_id = f"user_{n}"
        timestamp = start + rng.uniform(0, 600)
        for proposal in rng.sample(range(40), 6):
            engine.record_vote(
                user_id,
                f"prop_{proposal}",
                timestamp=timestamp,
                ip_hash=f"ip_home_{n}",
                device_hash=f"device_phone_{n}",
            )
            timestamp += rng.uniform(20, 300)

    logger.info("Recorded organic traffic for 8 users")


def show_scan(engine: AntiAbuseEngine):
    print_section("Security Scan")

    report = engine.perform_security_scan()
    for line in report.format().splitlines():
        logger.info(line)

    print_section("Trust Scores")
    scores = engine.calculate_all_credibility_scores()
    for user_id, score in sorted(scores.items(), key=lambda item: item[1].trust_score):
        logger.info(f"{user_id:>10}: {score.trust_score:.3f}")

    print_section("Alerts")
    for alert in engine.get_alerts():
        logger.info(
            f"{alert.alert_id} [{alert.severity_level}] {alert.alert_type}: "
            f"{', '.join(alert.involved_users)}"
        )

    resolved = engine.get_alerts()[0].alert_id
    engine.resolve_alert(resolved)
    stats = engine.get_security_statistics()
    logger.info(
        f"\nUsers: {stats['total_users']}, suspicious: {stats['suspicious_users']}, "
        f"open alerts: {stats['unresolved_alerts']}/{stats['total_alerts']}"
    )


def main():
    """Run the demonstration."""
    setup_logging(LogConfig(name="anti_abuse_demo", level=LogLevel.INFO))
    rng = random.Random(42)
    start = time.time() - 3600

    engine = AntiAbuseEngine(AntiAbuseConfig(min_co_votes=5))

    try:
        simulate_bot(engine, start)
        simulate_ring(engine, start + 100)
        simulate_humans(engine, start + 200, rng)
        show_scan(engine)
    except Exception as e:
        logger.error(f"\n❌ Demonstration failed: {e}", exception=e)
        return 1

    logger.info("\n🎉 Demonstration complete")
    return 0


if __name__ == "__main__":
    exit_code = main()
    sys.exit(exit_code)

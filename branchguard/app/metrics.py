from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from contextlib import contextmanager
import time

PUSH_DECISIONS = Counter("branchguard_push_decisions_total", "Push authorization decisions", ["result", "reason"])
RULE_MUTATIONS = Counter("branchguard_rule_mutations_total", "Branch protection rule mutations", ["action"])
DECISION_LATENCY = Histogram("branchguard_decision_latency_seconds", "Push authorization latency")

def render_latest():
    return generate_latest(), CONTENT_TYPE_LATEST

@contextmanager
def time_decision():
    t0 = time.perf_counter()
    try:
        yield
    finally:
        DECISION_LATENCY.observe(time.perf_counter() - t0)

def record_push_decision(allowed: bool, reason: str | None) -> None:
    try:
        PUSH_DECISIONS.labels(result="allowed" if allowed else "denied", reason=reason or "").inc()
    except Exception:
        # best-effort; metrics must not break authorization
        pass

def record_rule_mutation(action: str) -> None:
    try:
        RULE_MUTATIONS.labels(action=action).inc()
    except Exception:
        pass

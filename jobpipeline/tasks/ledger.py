"""
Task Ledger - per-kind queue bookkeeping in Redis

Celery keeps no queryable history of finished tasks, so the ledger records
them itself, fed by Celery signals:

    task_prerun   -> add to queue:{kind}:active
    task_postrun  -> remove from queue:{kind}:active
    task_success  -> add to queue:{kind}:completed
    task_failure  -> add to queue:{kind}:failed (only after the last retry)

Each set is a sorted set scored by timestamp and is pruned to the kind's
retention policy: at most `count` entries, none older than `age` seconds.
Waiting tasks are counted straight from the broker list.

Ledger failures are logged and never fail the task being recorded.
"""

import logging
import time
from typing import Dict, Optional

import redis
from celery.signals import task_failure, task_postrun, task_prerun, task_success

from jobpipeline.celery import QUEUE_POLICIES, TASK_KINDS, TASK_NAMES
from jobpipeline.config import get_settings
from jobpipeline.metrics import update_queue_depth

logger = logging.getLogger(__name__)

KIND_BY_TASK_NAME = {name: kind for kind, name in TASK_NAMES.items()}

ACTIVE = "active"
COMPLETED = "completed"
FAILED = "failed"


def ledger_key(kind: str, state: str) -> str:
    return f"queue:{kind}:{state}"


class TaskLedger:
    """
    Redis sorted-set ledger of task states.

    Attributes:
        redis: Synchronous Redis client (workers and API handlers are sync
            at the enqueue/signal boundary)
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis = redis_client or redis.Redis.from_url(
            get_settings().redis_url, decode_responses=True
        )

    def record_active(self, kind: str, task_id: str) -> None:
        try:
            self.redis.zadd(ledger_key(kind, ACTIVE), {task_id: time.time()})
        except redis.RedisError as e:
            logger.warning(f"Ledger write failed for {kind}/{task_id}: {e}")

    def record_finished(self, kind: str, task_id: str) -> None:
        try:
            self.redis.zrem(ledger_key(kind, ACTIVE), task_id)
        except redis.RedisError as e:
            logger.warning(f"Ledger write failed for {kind}/{task_id}: {e}")

    def record_completed(self, kind: str, task_id: str) -> None:
        self._record_terminal(kind, COMPLETED, task_id)

    def record_failed(self, kind: str, task_id: str) -> None:
        self._record_terminal(kind, FAILED, task_id)

    def _record_terminal(self, kind: str, state: str, task_id: str) -> None:
        key = ledger_key(kind, state)
        try:
            self.redis.zadd(key, {task_id: time.time()})
            self.prune(kind, state)
        except redis.RedisError as e:
            logger.warning(f"Ledger write failed for {kind}/{task_id}: {e}")

    def prune(self, kind: str, state: str) -> None:
        """Apply the kind's (count, age) retention to a terminal state set."""
        policy = QUEUE_POLICIES[kind]
        max_count, max_age = policy.keep_completed if state == COMPLETED else policy.keep_failed
        key = ledger_key(kind, state)

        self.redis.zremrangebyscore(key, 0, time.time() - max_age)
        # Keep only the newest max_count members
        self.redis.zremrangebyrank(key, 0, -(max_count + 1))

    def counts(self, kind: str) -> Dict[str, int]:
        """{waiting, active, completed, failed} for one kind."""
        queue = QUEUE_POLICIES[kind].queue
        try:
            waiting = self.redis.llen(queue)
            stats = {
                "waiting": waiting,
                "active": self.redis.zcard(ledger_key(kind, ACTIVE)),
                "completed": self.redis.zcard(ledger_key(kind, COMPLETED)),
                "failed": self.redis.zcard(ledger_key(kind, FAILED)),
            }
        except redis.RedisError as e:
            logger.warning(f"Ledger read failed for {kind}: {e}")
            return {"waiting": 0, "active": 0, "completed": 0, "failed": 0}

        update_queue_depth(queue, waiting)
        return stats

    def stats(self) -> Dict[str, Dict[str, int]]:
        return {kind: self.counts(kind) for kind in TASK_KINDS}


# ==================== Singleton ====================

_ledger: Optional[TaskLedger] = None


def get_ledger() -> TaskLedger:
    global _ledger
    if _ledger is None:
        _ledger = TaskLedger()
    return _ledger


def get_queue_stats() -> Dict[str, Dict[str, int]]:
    """Per-kind counts: {kind: {waiting, active, completed, failed}}."""
    return get_ledger().stats()


# ==================== Celery Signal Handlers ====================

def _kind_of(sender) -> Optional[str]:
    return KIND_BY_TASK_NAME.get(getattr(sender, "name", None))


@task_prerun.connect
def on_task_prerun(sender=None, task_id=None, **kwargs):
    kind = _kind_of(sender)
    if kind and task_id:
        get_ledger().record_active(kind, task_id)


@task_postrun.connect
def on_task_postrun(sender=None, task_id=None, **kwargs):
    kind = _kind_of(sender)
    if kind and task_id:
        get_ledger().record_finished(kind, task_id)


@task_success.connect
def on_task_success(sender=None, **kwargs):
    kind = _kind_of(sender)
    if kind:
        get_ledger().record_completed(kind, sender.request.id)


@task_failure.connect
def on_task_failure(sender=None, task_id=None, **kwargs):
    kind = _kind_of(sender)
    if kind and task_id:
        get_ledger().record_failed(kind, task_id)

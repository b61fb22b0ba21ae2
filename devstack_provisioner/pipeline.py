from __future__ import annotations

import dataclasses
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class ConcurrencyGroup(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL_GROUP_A = "parallel_group_a"
    PARALLEL_GROUP_B = "parallel_group_b"


class StageStatus(str, Enum):
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Step(Protocol):
    """A single idempotent step."""

    step_id: str
    depends_on: FrozenSet[str]
    optional: bool
    requires_network: bool

    def enabled(self, config: Any) -> bool:
        ...

    def probe(self, ctx: Any) -> bool:
        ...

    def run(self, ctx: Any) -> None:
        ...


@dataclass(frozen=True)
class Stage:
    name: str
    action: Callable[[Any], Any]
    probe: Optional[Callable[[Any], bool]] = None
    depends_on: FrozenSet[str] = frozenset()
    group: ConcurrencyGroup = ConcurrencyGroup.SEQUENTIAL
    enabled: Optional[Callable[[Any], bool]] = None
    optional: bool = False
    requires_network: bool = False


def stage_from_step(step: Step, group: ConcurrencyGroup = ConcurrencyGroup.SEQUENTIAL) -> Stage:
    return Stage(
        name=step.step_id,
        action=step.run,
        probe=step.probe,
        depends_on=frozenset(step.depends_on),
        group=group,
        enabled=step.enabled,
        optional=step.optional,
        requires_network=step.requires_network,
    )


@dataclass(frozen=True)
class StageResult:
    name: str
    status: StageStatus
    error_detail: Optional[str] = None
    duration_s: float = 0.0


@dataclass
class PipelineResult:
    results: Dict[str, StageResult] = field(default_factory=dict)
    optional: FrozenSet[str] = frozenset()

    def by_status(self, status: StageStatus) -> List[str]:
        return [name for name, r in self.results.items() if r.status == status]

    @property
    def ran_steps(self) -> List[str]:
        return [n for n, r in self.results.items() if r.status != StageStatus.SKIPPED]

    @property
    def skipped_steps(self) -> List[str]:
        return self.by_status(StageStatus.SKIPPED)

    @property
    def required_failures(self) -> List[str]:
        return [n for n in self.by_status(StageStatus.FAILED) if n not in self.optional]

    @property
    def ok(self) -> bool:
        return not self.required_failures


def apply_concurrency_policy(stages: Sequence[Stage], policy: Mapping[str, Any]) -> List[Stage]:
    """Rebind concurrency groups by stage name (values are ConcurrencyGroup or their names)."""

    known = {s.name for s in stages}
    unknown = set(policy) - known
    if unknown:
        raise ValueError(f"Concurrency policy names unknown stages: {', '.join(sorted(unknown))}")

    out: List[Stage] = []
    for s in stages:
        if s.name in policy:
            group = ConcurrencyGroup(str(getattr(policy[s.name], "value", policy[s.name])).lower())
            s = dataclasses.replace(s, group=group)
        out.append(s)
    return out


def plan_batches(stages: Sequence[Stage]) -> List[List[Stage]]:
    """Split stages into execution batches.

    A SEQUENTIAL stage is a batch of one; consecutive stages sharing a
    parallel group form one concurrent batch.
    """

    batches: List[List[Stage]] = []
    for s in stages:
        if (
            s.group != ConcurrencyGroup.SEQUENTIAL
            and batches
            and batches[-1][0].group == s.group
        ):
            batches[-1].append(s)
        else:
            batches.append([s])
    return batches


def validate_stages(stages: Sequence[Stage]) -> None:
    seen: set[str] = set()
    for batch in plan_batches(stages):
        batch_names = [s.name for s in batch]
        for name in batch_names:
            if name in seen or batch_names.count(name) > 1:
                raise ValueError(f"Duplicate stage name: {name}")
        for s in batch:
            for dep in sorted(s.depends_on):
                if dep in batch_names:
                    raise ValueError(f"{s.name} depends on {dep}, which runs concurrently with it")
                if dep not in seen:
                    raise ValueError(f"{s.name} depends on {dep}, which is not declared before it")
        seen.update(batch_names)


DEPENDENCY_FAILED = "dependency failed"


def _blocks_dependents(result: StageResult) -> bool:
    """FAILED stages block their dependents, and so do stages skipped because of one."""

    if result.status == StageStatus.FAILED:
        return True
    return result.status == StageStatus.SKIPPED and (result.error_detail or "").startswith(DEPENDENCY_FAILED)


def _skip_reason(stage: Stage, ctx: Any, results: Mapping[str, StageResult]) -> Optional[str]:
    config = getattr(ctx, "config", None)
    if stage.enabled is not None and not stage.enabled(config):
        return "disabled"
    if stage.requires_network and bool(getattr(config, "offline_mode", False)):
        return "offline mode"
    blocked = sorted(d for d in stage.depends_on if d in results and _blocks_dependents(results[d]))
    if blocked:
        return f"{DEPENDENCY_FAILED}: " + ", ".join(blocked)
    return None


def run_stage(stage: Stage, ctx: Any, results: Mapping[str, StageResult]) -> StageResult:
    """Run one stage. Never raises for stage failures; they become FAILED results."""

    started = time.monotonic()

    try:
        reason = _skip_reason(stage, ctx, results)
        if reason is not None:
            if reason.startswith(DEPENDENCY_FAILED):
                logger.warning("Skipping stage %s (%s)", stage.name, reason)
            else:
                logger.info("Skipping stage %s (%s)", stage.name, reason)
            return StageResult(name=stage.name, status=StageStatus.SKIPPED, error_detail=reason)

        if stage.probe is not None and stage.probe(ctx):
            logger.info("Stage %s already satisfied", stage.name)
            return StageResult(name=stage.name, status=StageStatus.SUCCEEDED, duration_s=time.monotonic() - started)

        logger.info("Running stage %s", stage.name)
        stage.action(ctx)
    except Exception as e:
        logger.error("Stage %s failed: %s", stage.name, e)
        logger.debug("Stage %s traceback", stage.name, exc_info=True)
        return StageResult(
            name=stage.name,
            status=StageStatus.FAILED,
            error_detail=str(e) or type(e).__name__,
            duration_s=time.monotonic() - started,
        )

    logger.info("Stage %s completed", stage.name)
    return StageResult(name=stage.name, status=StageStatus.SUCCEEDED, duration_s=time.monotonic() - started)


def run_pipeline(*, stages: Sequence[Stage], ctx: Any) -> PipelineResult:
    """Run stages honoring dependency and concurrency-group constraints.

    Parallel batches are joined completely (fail-soft) before the next
    batch starts, so a failing stage never cancels its siblings.
    """

    validate_stages(stages)
    result = PipelineResult(optional=frozenset(s.name for s in stages if s.optional))

    for batch in plan_batches(stages):
        if len(batch) == 1:
            stage = batch[0]
            result.results[stage.name] = run_stage(stage, ctx, result.results)
            continue

        names = [s.name for s in batch]
        logger.info("Starting concurrent stages: %s", ", ".join(names))
        snapshot = dict(result.results)
        with ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix=batch[0].group.value) as executor:
            futures = {s.name: executor.submit(run_stage, s, ctx, snapshot) for s in batch}
        # Leaving the executor joined every future; record in declared order.
        for name in names:
            result.results[name] = futures[name].result()
        logger.info(
            "Concurrent stages finished: %s",
            ", ".join(f"{n}={result.results[n].status.value}" for n in names),
        )

    return result


def iter_summary(result: PipelineResult) -> Iterable[str]:
    for name, r in result.results.items():
        line = f"{name:<22} {r.status.value.upper():<9}"
        if r.error_detail:
            line += f" {r.error_detail}"
        if name in result.optional and r.status == StageStatus.FAILED:
            line += " (optional)"
        yield line

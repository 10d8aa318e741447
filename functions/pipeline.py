"""
Side-effect pipeline for trigger handlers.

A handler validates its event, plans a list of Effects, and hands them to
run_effects. Each effect runs on its own: a failure is logged and recorded,
and the remaining effects still run.
"""
import functools
from dataclasses import dataclass, field
from typing import Any, Callable, List, Tuple

from firebase_functions import logger


@dataclass
class Effect:
    name: str
    action: Callable[[], Any]

    def __call__(self):
        return self.action()


@dataclass
class PipelineReport:
    completed: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def failed_names(self) -> List[str]:
        return [name for name, _ in self.failed]


def run_effects(effects: List[Effect], context: str = "") -> PipelineReport:
    report = PipelineReport()
    for effect in effects:
        try:
            effect()
        except Exception as e:
            logger.error("Side effect failed", context=context, effect=effect.name,
                         error=f"{type(e).__name__}: {e}")
            report.failed.append((effect.name, str(e)))
        else:
            report.completed.append(effect.name)

    if report.failed:
        logger.warn("Pipeline finished with failures", context=context,
                    completed=len(report.completed), failed=report.failed_names)
    else:
        logger.debug("Pipeline finished", context=context, completed=report.completed)
    return report


def contained(context):
    """Log and swallow anything a trigger or handler raises.

    The write that fired the trigger has already committed, so there is
    nothing to roll back and a platform retry would only repeat side effects.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger.error("Handler failed", context=context, error=f"{type(e).__name__}: {e}")
                return None
        return wrapper
    return decorator

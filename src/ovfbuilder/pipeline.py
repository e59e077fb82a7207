# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Ordered step pipeline with cooperative cancellation and LIFO cleanup.

A :class:`PipelineRunner` owns an ordered list of :class:`Step` objects
for the duration of one build and executes them against a
:class:`~ovfbuilder.state.StateBag`.

Execution
---------
Steps run strictly one after another.  Before each step the runner
checks the cancellation flag; :meth:`PipelineRunner.cancel` may be
called from any thread (or a signal handler), but a step that is
already running is never interrupted, only the next one is not started.

A step's :meth:`~Step.run` returns :attr:`StepAction.CONTINUE` to move
on or :attr:`StepAction.HALT` to stop.  A step that fails either writes
:attr:`StateKey.ERROR` and halts, or raises; the runner records the
exception under the same key.

Cleanup
-------
Whatever ended the loop, every step that was started gets
:meth:`~Step.cleanup` in reverse order, so resources acquired first are
released last.  Cleanup failures are logged and otherwise ignored.

Outcome
-------
The state is classified with a fixed precedence: error, then
cancellation, then halt, then success.  Only a successful run produces
an :class:`~ovfbuilder.artifact.Artifact`.
"""

from __future__ import annotations

import abc
import enum
import logging
import threading
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TypeAlias

from .artifact import Artifact
from .state import StateBag, StateKey

logger = logging.getLogger(__name__)


class StepAction(enum.Enum):
    """What the runner should do after a step returns."""

    CONTINUE = "continue"
    HALT = "halt"


class StepError(Exception):
    """A step failed in a way that should end the build."""


class Step(abc.ABC):
    """A single unit of build work.

    Steps keep nothing between runs; anything later steps (or their own
    cleanup) need goes through the state bag.
    """

    @abc.abstractmethod
    async def run(self, state: StateBag) -> StepAction:
        """Do the work of this step."""

    async def cleanup(self, state: StateBag) -> None:
        """Release whatever :meth:`run` acquired.  Called even on failure."""
        return None

    @property
    def name(self) -> str:
        return type(self).__name__


class RunnerState(enum.Enum):
    """Lifecycle of a :class:`PipelineRunner`."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ERRORED = "errored"
    CANCELLED = "cancelled"
    HALTED = "halted"


@dataclass(frozen=True)
class Succeeded:
    artifact: Artifact


@dataclass(frozen=True)
class Errored:
    error: BaseException


@dataclass(frozen=True)
class Cancelled:
    pass


@dataclass(frozen=True)
class Halted:
    pass


RunOutcome: TypeAlias = Succeeded | Errored | Cancelled | Halted

ArtifactFactory: TypeAlias = Callable[[StateBag], Artifact]
PauseFn: TypeAlias = Callable[[Step, StateBag], Awaitable[None]]


class PipelineRunner:
    """Execute an ordered sequence of steps and classify the result.

    Example::

        runner = PipelineRunner(steps, artifact_factory=make_artifact)
        outcome = await runner.run(state)
        if isinstance(outcome, Succeeded):
            print(outcome.artifact)

    Args:
        steps: The steps, in execution order.
        artifact_factory: Builds the artifact once every step has
            continued.  Failure here turns the run into an error.
        pause_fn: Awaited before each step (used for ``--debug`` builds).
            If it raises, the step is not started and the run errors.
    """

    def __init__(
        self,
        steps: Sequence[Step],
        *,
        artifact_factory: ArtifactFactory,
        pause_fn: PauseFn | None = None,
    ) -> None:
        self._steps = list(steps)
        self._artifact_factory = artifact_factory
        self._pause_fn = pause_fn
        self._cancel = threading.Event()
        self._state = RunnerState.IDLE

    @property
    def state(self) -> RunnerState:
        return self._state

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Ask the runner to stop before the next step.  Thread-safe."""
        if not self._cancel.is_set():
            logger.info("Cancelling the step runner...")
        self._cancel.set()

    async def run(self, state: StateBag) -> RunOutcome:
        """Run every step against *state* and return the outcome.

        Raises:
            RuntimeError: If this runner was already used.
        """
        if self._state is not RunnerState.IDLE:
            raise RuntimeError(f"Runner already used (state: {self._state.value})")
        self._state = RunnerState.RUNNING

        started: list[Step] = []
        try:
            for step in self._steps:
                if self._cancel.is_set():
                    logger.debug("Cancellation observed before %s", step.name)
                    state.put(StateKey.CANCELLED, True)
                    break

                if self._pause_fn is not None and not await self._pause(step, state):
                    break

                started.append(step)
                logger.debug("Running step %s", step.name)
                action = await self._run_step(step, state)
                if action is StepAction.HALT:
                    state.put(StateKey.HALTED, True)
                    break
        finally:
            await self._cleanup(started, state)

        outcome = self._classify(state)
        logger.debug("Pipeline finished: %s", self._state.value)
        return outcome

    async def _pause(self, step: Step, state: StateBag) -> bool:
        assert self._pause_fn is not None
        try:
            await self._pause_fn(step, state)
        except Exception as e:
            logger.debug("Pause before %s raised", step.name, exc_info=True)
            state.put(StateKey.ERROR, e)
            return False
        return True

    async def _run_step(self, step: Step, state: StateBag) -> StepAction:
        try:
            return await step.run(state)
        except Exception as e:
            logger.debug("Step %s raised", step.name, exc_info=True)
            state.put(StateKey.ERROR, e)
            return StepAction.HALT

    async def _cleanup(self, started: list[Step], state: StateBag) -> None:
        for step in reversed(started):
            try:
                await step.cleanup(state)
            except Exception:
                logger.warning("Cleanup of %s failed", step.name, exc_info=True)

    def _classify(self, state: StateBag) -> RunOutcome:
        error, has_error = state.get_ok(StateKey.ERROR)
        if has_error:
            self._state = RunnerState.ERRORED
            return Errored(error)

        if state.get(StateKey.CANCELLED):
            self._state = RunnerState.CANCELLED
            return Cancelled()

        if state.get(StateKey.HALTED):
            self._state = RunnerState.HALTED
            return Halted()

        try:
            artifact = self._artifact_factory(state)
        except Exception as e:
            self._state = RunnerState.ERRORED
            return Errored(e)

        self._state = RunnerState.COMPLETED
        return Succeeded(artifact)

    def __len__(self) -> int:
        return len(self._steps)

    def __repr__(self) -> str:
        names = ", ".join(s.name for s in self._steps)
        return f"PipelineRunner([{names}], state={self._state.value})"

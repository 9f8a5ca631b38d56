# runner.py
from __future__ import annotations

import asyncio
import codecs
import functools
import subprocess
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Set

from .errors import StepFailure
from .model import ActionStep, JobHandle, Pipeline, ShellStep, Step
from .progress import ProgressTracker
from .ui.console import Console, get_console


# ----------------------------------------------------------------------
# Per-pipeline state machine
# ----------------------------------------------------------------------

class PipelineRun:
    """
    (pipeline, index) plus a terminal state.

    start() counts the pipeline as started exactly once. advance() is the
    only transition: no failure moves to the next step (or to success after
    the last one), a failure ends the run where it is.
    """

    def __init__(self, pipeline: Pipeline, tracker: ProgressTracker):
        self.pipeline = pipeline
        self.tracker = tracker
        self.index = 0
        self.state = "pending"  # pending | running | succeeded | failed
        self.failure: Optional[StepFailure] = None

    @property
    def done(self) -> bool:
        return self.state in ("succeeded", "failed")

    @property
    def succeeded(self) -> bool:
        return self.state == "succeeded"

    @property
    def current(self) -> Step:
        return self.pipeline.steps[self.index]

    def start(self) -> None:
        if self.state != "pending":
            raise RuntimeError(f"pipeline for {self.pipeline.target} already started")
        self.tracker.record_start()
        self.state = "running"
        if not self.pipeline.steps:
            self._succeed()

    def advance(self, failure: Optional[StepFailure] = None) -> None:
        if self.state != "running":
            raise RuntimeError(f"pipeline for {self.pipeline.target} is {self.state}")
        if failure is not None:
            self.failure = failure
            self.state = "failed"
            self.tracker.record_failure(str(failure))
            return
        self.index += 1
        if self.index == len(self.pipeline.steps):
            self._succeed()

    def _succeed(self) -> None:
        self.state = "succeeded"
        self.tracker.record_finish()


# ----------------------------------------------------------------------
# Orchestrator
# ----------------------------------------------------------------------

async def _pump(stream: Optional[asyncio.StreamReader], chunks: List[str]) -> None:
    if stream is None:
        return
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        data = await stream.read(4096)
        if not data:
            break
        chunks.append(decoder.decode(data))
    tail = decoder.decode(b"", final=True)
    if tail:
        chunks.append(tail)


class Orchestrator:
    """
    Runs pipelines either blocking (run_sync) or on the running asyncio loop
    (submit). Several submitted pipelines can have subprocesses in flight at
    once; the steps of one pipeline never overlap.
    """

    def __init__(
        self,
        tracker: ProgressTracker,
        console: Console | None = None,
        extra_args: Mapping[str, Sequence[str]] | None = None,
    ):
        self.tracker = tracker
        self.console = console or get_console()
        self.extra_args: Dict[str, List[str]] = {k: list(v) for k, v in (extra_args or {}).items()}
        self._pending: Set[asyncio.Future] = set()
        self._handles: Dict[int, JobHandle] = {}

    @property
    def in_flight(self) -> int:
        """Subprocesses spawned and not yet reaped."""
        return len(self._handles)

    def argv(self, step: ShellStep) -> List[str]:
        return [step.cmd, *step.args, *self.extra_args.get(step.cmd, [])]

    # ---- synchronous mode ----

    def run_sync(self, pipeline: Pipeline) -> bool:
        run = PipelineRun(pipeline, self.tracker)
        run.start()
        while not run.done:
            step = run.current
            if step.info:
                self.console.notify(step.info)
            run.advance(self._execute_sync(pipeline.target, step))
        self._report(run, with_status=False)
        return run.succeeded

    def _execute_sync(self, target: str, step: Step) -> Optional[StepFailure]:
        if isinstance(step, ActionStep):
            return self._run_action(target, step)

        handle = JobHandle(step=step)
        try:
            proc = subprocess.run(
                self.argv(step),
                cwd=step.cwd,
                encoding="utf-8",
                errors="replace",
                capture_output=True,
            )
        except Exception as e:
            return self._spawn_failure(target, step, e)

        handle.stdout_chunks.append(proc.stdout or "")
        handle.stderr_chunks.append(proc.stderr or "")
        handle.returncode = proc.returncode
        return self._check_exit(target, handle)

    # ---- asynchronous mode ----

    def submit(self, pipeline: Pipeline) -> "asyncio.Future[bool]":
        """
        Start a pipeline on the running loop. The returned future resolves to
        True/False when the pipeline ends; it never carries an exception.
        """
        loop = asyncio.get_running_loop()
        done: asyncio.Future = loop.create_future()
        self._pending.add(done)
        done.add_done_callback(self._pending.discard)

        run = PipelineRun(pipeline, self.tracker)
        run.start()
        self._continue(run, done)
        return done

    async def drain(self) -> None:
        """Wait until every submitted pipeline has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def _continue(self, run: PipelineRun, done: asyncio.Future) -> None:
        # Actions run inline; the first shell step suspends the pipeline
        # until its process exits and _on_exit resumes here.
        target = run.pipeline.target
        while not run.done:
            step = run.current
            if step.info:
                self.console.notify(f"{self.tracker.banner()} {step.info}")

            if isinstance(step, ActionStep):
                run.advance(self._run_action(target, step))
                continue

            handle = JobHandle(step=step)
            self._handles[handle.id] = handle
            task = asyncio.get_running_loop().create_task(self._spawn(handle))
            task.add_done_callback(functools.partial(self._on_exit, run, handle, done))
            return

        self._report(run, with_status=True)
        if not done.done():
            done.set_result(run.succeeded)

    async def _spawn(self, handle: JobHandle) -> None:
        step = handle.step
        proc = await asyncio.create_subprocess_exec(
            *self.argv(step),
            cwd=step.cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        await asyncio.gather(
            _pump(proc.stdout, handle.stdout_chunks),
            _pump(proc.stderr, handle.stderr_chunks),
        )
        handle.returncode = await proc.wait()

    def _on_exit(
        self,
        run: PipelineRun,
        handle: JobHandle,
        done: asyncio.Future,
        task: asyncio.Task,
    ) -> None:
        self._handles.pop(handle.id, None)
        target = run.pipeline.target

        if task.cancelled():
            failure: Optional[StepFailure] = StepFailure(
                target=target,
                message="command was cancelled",
                step=handle.step.describe(),
            )
        elif task.exception() is not None:
            failure = self._spawn_failure(target, handle.step, task.exception())
        else:
            failure = self._check_exit(target, handle)

        run.advance(failure)
        self._continue(run, done)

    # ---- shared helpers ----

    def _run_action(self, target: str, step: ActionStep) -> Optional[StepFailure]:
        try:
            step.action()
        except Exception as e:
            return StepFailure(
                target=target,
                message=step.err or f"Failed to execute the following action: {step.describe()}",
                details={"error": repr(e)},
                step=step.describe(),
            )
        return None

    def _check_exit(self, target: str, handle: JobHandle) -> Optional[StepFailure]:
        if handle.returncode == 0:
            return None
        step = handle.step
        return StepFailure(
            target=target,
            message=step.err or f"Failed to execute the following command:\n{step.describe()}",
            step=step.describe(),
            exit_code=handle.returncode,
            stdout=handle.stdout,
            stderr=handle.stderr,
        )

    def _spawn_failure(self, target: str, step: ShellStep, exc: BaseException) -> StepFailure:
        details = {"error": str(exc)}
        if step.cwd and not Path(step.cwd).is_dir():
            details["cwd"] = f"not found: {step.cwd}"
        return StepFailure(
            target=target,
            message=step.err or f"Failed to execute the following command:\n{step.describe()}",
            details=details,
            step=step.describe(),
        )

    def _report(self, run: PipelineRun, *, with_status: bool) -> None:
        if run.succeeded:
            if run.pipeline.success_message:
                prefix = f"{self.tracker.banner()} " if with_status else ""
                self.console.notify(prefix + run.pipeline.success_message)
            return

        failure = run.failure
        if failure is None:
            return
        if failure.stdout:
            self.console.print_debug(failure.stdout.rstrip())
        output = failure.stderr or "\n".join(f"{k}={v}" for k, v in failure.details.items())
        self.console.print_failure(
            run.pipeline.target,
            failure.message,
            exit_code=failure.exit_code,
            output=output,
        )

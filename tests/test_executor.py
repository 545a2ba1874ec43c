"""
Tests for the interactive executor: modes, injection ordering, failure
and thread affinity.
"""

import threading
import textwrap

import pytest

from fieldscript.engine import Mesh, DeviceAffinityError, Uniform
from fieldscript.engine.world import build_world
from fieldscript.script import compile_script, compile_statement, RuntimeStatementError
from fieldscript.script.runtime import (
    InteractiveExecutor, Mode, ExecutorClosedError, create_context,
)

TIMEOUT = 10


@pytest.fixture(scope="module")
def world():
    return build_world()


def make_executor(world, source, keep_open=False, output_dir=None):
    ctx = create_context(output_dir=output_dir, mesh=Mesh(4, 4, 1))
    return InteractiveExecutor(compile_script(source, world), ctx, keep_open=keep_open)


def texts(executor):
    return [record.statement.text for record in executor.history]


class TestRunToCompletion:
    """Plain scripts without remote input."""

    def test_runs_in_source_order(self, world):
        executor = make_executor(world, 'print "a"\nprint "b"; print "c"')
        snapshot = executor.run()
        assert snapshot.mode == Mode.FINISHED
        assert not snapshot.stopped
        assert executor.ctx.output == ["a", "b", "c"]
        assert [r.position for r in executor.history] == [0, 1, 2]

    def test_empty_script_finishes(self, world):
        executor = make_executor(world, "# nothing to do\n")
        assert executor.run().mode == Mode.FINISHED

    def test_statement_results_recorded(self, world, tmp_path):
        executor = make_executor(
            world, "m = uniform(1, 0, 0)\nsave\nprint t", output_dir=str(tmp_path)
        )
        executor.run()
        assert executor.history[1].result.endswith("m000000.npy")
        assert executor.ctx.output == ["0"]

    def test_script_drives_simulation(self, world):
        source = textwrap.dedent("""\
            setGridSize 8 8 1
            setCellSize 2e-9 2e-9 2e-9
            m = uniform(0, 0, 2)
            run 1e-12
            print average
        """)
        executor = make_executor(world, source)
        executor.run()
        sim = executor.ctx.simulation
        assert sim.mesh.grid_size() == (8, 8, 1)
        assert sim.time == pytest.approx(1e-12)
        assert executor.ctx.output == ["(0, 0, 1)"]

    def test_cannot_start_twice(self, world):
        executor = make_executor(world, "print 1")
        executor.run()
        with pytest.raises(RuntimeError):
            executor.run()


class TestFailure:
    """A statement error fails the run with no rollback."""

    def test_failure_stops_run(self, world):
        executor = make_executor(world, 'm = uniform(1, 0, 0)\nrun (1 / 0)\nprint "never"')
        snapshot = executor.run()
        assert snapshot.mode == Mode.FAILED
        assert snapshot.position == 1
        assert executor.ctx.output == []
        assert "E400" in snapshot.error

    def test_error_identifies_statement(self, world):
        executor = make_executor(world, "print 1\nrun 1e-12")
        executor.run()
        error = executor.error
        assert isinstance(error, RuntimeStatementError)
        assert error.code == "E400"
        assert error.position == 1
        assert error.statement_text == "run 1e-12"
        assert isinstance(error.__cause__, RuntimeError)

    def test_prior_effects_kept(self, world):
        executor = make_executor(world, "m = uniform(0, 1, 0)\nrun -1")
        executor.run()
        assert executor.mode == Mode.FAILED
        assert executor.ctx.simulation.average() == pytest.approx((0.0, 1.0, 0.0))

    def test_no_injection_after_failure(self, world):
        executor = make_executor(world, "run 1e-12")
        executor.run()
        with pytest.raises(ExecutorClosedError):
            executor.inject(compile_statement("print 1", world))


class TestInteraction:
    """The interactive directive and operator resume."""

    def test_end_to_end_interactive(self, world):
        executor = make_executor(
            world, "m = uniform(1, 0, 0)\ninteractive\nm = uniform(0, 1, 0)"
        )
        executor.start()
        assert executor.wait_for(Mode.AWAITING_INTERACTION, timeout=TIMEOUT)
        assert executor.position == 2
        assert executor.ctx.simulation.average() == pytest.approx((1.0, 0.0, 0.0))

        # blocked until resumed
        assert not executor.wait_for(Mode.FINISHED, timeout=0.2)
        assert executor.position == 2

        executor.request_resume()
        assert executor.wait_for(Mode.FINISHED, timeout=TIMEOUT)
        assert executor.join(TIMEOUT)
        assert executor.ctx.simulation.average() == pytest.approx((0.0, 1.0, 0.0))
        assert texts(executor)[-1] == "m = uniform(0, 1, 0)"

    def test_bare_config_statements_around_interactive(self, world):
        executor = make_executor(world, "uniform 1 0 0\ninteractive\nuniform 0 1 0")
        executor.start()
        assert executor.wait_for(Mode.AWAITING_INTERACTION, timeout=TIMEOUT)
        assert texts(executor) == ["uniform 1 0 0", "interactive"]
        assert executor.history[0].result == Uniform(1.0, 0.0, 0.0)

        executor.request_resume()
        assert executor.wait_for(Mode.FINISHED, timeout=TIMEOUT)
        assert executor.history[-1].result(0, 0, 0) == (0.0, 1.0, 0.0)

    def test_pause_does_not_leave_awaiting(self, world):
        executor = make_executor(world, 'interactive\nprint "after"')
        executor.start()
        assert executor.wait_for(Mode.AWAITING_INTERACTION, timeout=TIMEOUT)
        executor.request_pause()
        assert not executor.wait_for(Mode.PAUSED, timeout=0.2)
        executor.request_resume()
        assert executor.wait_for(Mode.FINISHED, timeout=TIMEOUT)
        assert executor.ctx.output == ["after"]

    def test_injection_while_awaiting_runs_after_script(self, world):
        executor = make_executor(world, 'interactive\nprint "script"')
        executor.start()
        assert executor.wait_for(Mode.AWAITING_INTERACTION, timeout=TIMEOUT)
        executor.inject(compile_statement('print "injected"', world))
        executor.request_resume()
        assert executor.wait_for(Mode.FINISHED, timeout=TIMEOUT)
        assert executor.ctx.output == ["script", "injected"]


class TestPauseAndInject:
    """Injection while paused, and resume ordering."""

    def test_inject_while_paused(self, world):
        executor = make_executor(world, 'print "first"', keep_open=True)
        executor.start()
        assert executor.wait_idle(TIMEOUT)

        executor.request_pause()
        assert executor.wait_for(Mode.PAUSED, timeout=TIMEOUT)
        pending = executor.inject([
            compile_statement('print "one"', world),
            compile_statement('print "two"', world),
        ])
        assert pending == 2
        snapshot = executor.snapshot()
        assert snapshot.mode == Mode.PAUSED
        assert executor.ctx.output == ["first"]

        executor.request_resume()
        assert executor.wait_for(Mode.RUNNING, timeout=TIMEOUT)
        assert executor.wait_idle(TIMEOUT)
        assert executor.ctx.output == ["first", "one", "two"]
        assert executor.snapshot().idle

        executor.request_stop()
        assert executor.join(TIMEOUT)

    def test_per_source_order_from_concurrent_injectors(self, world):
        executor = make_executor(world, "", keep_open=True)
        executor.start()
        batches = {
            source: [compile_statement(f'print "{source}{i}"', world) for i in range(25)]
            for source in ("a", "b", "c")
        }

        def inject_all(statements):
            for statement in statements:
                executor.inject(statement)

        threads = [threading.Thread(target=inject_all, args=(b,)) for b in batches.values()]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert executor.wait_idle(TIMEOUT)

        output = executor.ctx.output
        assert len(output) == 75
        for source in batches:
            from_source = [line for line in output if line.startswith(source)]
            assert from_source == [f"{source}{i}" for i in range(25)]

        executor.request_stop()
        assert executor.join(TIMEOUT)

    def test_injected_statements_extend_sequence(self, world):
        executor = make_executor(world, "print 1", keep_open=True)
        executor.start()
        executor.inject(compile_statement("print 2", world, origin="test"))
        assert executor.wait_idle(TIMEOUT)
        assert len(executor.sequence) == 2
        assert executor.sequence[1].origin == "test"
        executor.request_stop()
        assert executor.join(TIMEOUT)


class TestStopAndKeepOpen:
    """Ending a run."""

    def test_stop_while_idle(self, world):
        executor = make_executor(world, "print 1", keep_open=True)
        executor.start()
        assert executor.wait_idle(TIMEOUT)
        assert executor.mode == Mode.RUNNING
        executor.request_stop()
        assert executor.wait_for(Mode.FINISHED, timeout=TIMEOUT)
        assert executor.snapshot().stopped

    def test_stop_while_paused(self, world):
        executor = make_executor(world, "interactive\nprint 1")
        executor.start()
        assert executor.wait_for(Mode.AWAITING_INTERACTION, timeout=TIMEOUT)
        executor.request_stop()
        assert executor.wait_for(Mode.FINISHED, timeout=TIMEOUT)
        assert executor.ctx.output == []

    def test_clearing_keep_open_finishes(self, world):
        executor = make_executor(world, "print 1", keep_open=True)
        executor.start()
        assert executor.wait_idle(TIMEOUT)
        executor.set_keep_open(False)
        assert executor.wait_for(Mode.FINISHED, timeout=TIMEOUT)
        assert not executor.snapshot().stopped

    def test_inject_after_finish_refused(self, world):
        executor = make_executor(world, "print 1")
        executor.run()
        with pytest.raises(ExecutorClosedError):
            executor.inject(compile_statement("print 2", world))


class TestAffinity:
    """Only the worker thread touches the device."""

    def test_worker_owns_device(self, world):
        executor = make_executor(world, "m = uniform(1, 0, 0)")
        thread = executor.start()
        assert executor.join(TIMEOUT)
        assert executor.ctx.device.owner is thread

    def test_other_threads_refused(self, world):
        executor = make_executor(world, "m = uniform(1, 0, 0)")
        executor.start()
        assert executor.join(TIMEOUT)
        with pytest.raises(DeviceAffinityError):
            executor.ctx.simulation.set_magnetization(Uniform(0, 0, 1))

    def test_device_owned_elsewhere_fails_run(self, world):
        executor = make_executor(world, 'print "never"')
        executor.ctx.device.lock_thread()
        executor.start()
        assert executor.wait_for(Mode.FINISHED, Mode.FAILED, timeout=TIMEOUT)
        assert executor.join(TIMEOUT)
        assert executor.mode == Mode.FAILED
        assert executor.error.code == "E401"
        assert isinstance(executor.error.__cause__, DeviceAffinityError)
        assert executor.ctx.output == []
        with pytest.raises(ExecutorClosedError):
            executor.inject(compile_statement("print 1", world))

    def test_snapshot_reports_current_statement(self, world):
        executor = make_executor(world, "interactive\nprint 1")
        executor.start()
        assert executor.wait_for(Mode.AWAITING_INTERACTION, timeout=TIMEOUT)
        snapshot = executor.snapshot()
        assert snapshot.current == "print 1"
        assert snapshot.to_dict()["mode"] == "awaiting_interaction"
        executor.request_stop()
        assert executor.join(TIMEOUT)

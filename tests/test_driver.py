import threading
import time
import unittest

from canon_runner import wait_for

from robo_lang import Intrinsic, NullIO, RoboError, RoboInterpreter, RuntimeConfig


def _interp(source: str, **settings) -> RoboInterpreter:
    interp = RoboInterpreter(config=RuntimeConfig(**settings), io_handler=NullIO())
    interp.load(source)
    return interp


def _script_threads():
    return [t for t in threading.enumerate() if t.name == "robo-script" and t.is_alive()]


class DriverLifecycleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.interp = None

    def tearDown(self) -> None:
        if self.interp is not None:
            self.interp.stop()

    def _start(self, source: str, **settings) -> RoboInterpreter:
        self.interp = _interp(source, **settings)
        self.interp.start()
        return self.interp

    def test_stop_ends_an_infinite_loop_promptly(self) -> None:
        interp = self._start("void setup() { } void loop() { while (true) { } }")
        self.assertTrue(interp.is_running())
        time.sleep(0.05)
        began = time.monotonic()
        interp.stop()
        self.assertLess(time.monotonic() - began, 1.0)
        self.assertFalse(interp.is_running())

    def test_stop_interrupts_a_long_delay(self) -> None:
        interp = self._start("void loop() { delay(60000); }")
        time.sleep(0.05)
        began = time.monotonic()
        interp.stop()
        self.assertLess(time.monotonic() - began, 1.0)

    def test_stop_during_a_turn_leaves_the_motors_stopped(self) -> None:
        interp = self._start("void loop() { left(); }", turn_ms=60000)
        self.assertTrue(wait_for(lambda: interp.get_pin_value(6) == 255))
        interp.stop()
        self.assertEqual([interp.get_pin_value(p) for p in (5, 6, 9, 10)], [0, 0, 0, 0])

    def test_start_is_idempotent(self) -> None:
        interp = self._start("void loop() { delay(5); }")
        interp.start()
        self.assertEqual(len(_script_threads()), 1)
        interp.stop()
        self.assertEqual(_script_threads(), [])
        self.assertFalse(interp.is_running())

    def test_setup_runs_once_then_loop_repeats(self) -> None:
        interp = self._start("int setups; int loops; void setup() { setups++; } void loop() { loops++; }")
        self.assertTrue(wait_for(lambda: interp.get_variable("loops") >= 5))
        interp.stop()
        self.assertEqual(interp.get_variable("setups"), 1)

    def test_restart_after_stop(self) -> None:
        interp = self._start("int loops; void loop() { loops++; delay(1); }")
        self.assertTrue(wait_for(lambda: interp.get_variable("loops") > 0))
        interp.stop()
        seen = interp.get_variable("loops")
        interp.start()
        self.assertTrue(wait_for(lambda: interp.get_variable("loops") > seen))

    def test_stop_without_start_is_a_no_op(self) -> None:
        interp = _interp("void loop() { }")
        interp.stop()
        self.assertFalse(interp.is_running())

    def test_missing_entry_points_still_run(self) -> None:
        interp = self._start("int x;")
        self.assertTrue(interp.is_running())

    def test_load_stops_the_running_script(self) -> None:
        interp = self._start("void loop() { while (true); }")
        interp.load("int fresh = 3;")
        self.assertFalse(interp.is_running())
        self.assertEqual(interp.get_variable("fresh"), 3)
        self.assertEqual(_script_threads(), [])

    def test_load_clears_previous_tables(self) -> None:
        interp = _interp("int old = 1; void f() { }")
        interp.load("int other = 2;")
        self.assertIsNone(interp.get_variable("old"))
        self.assertNotIn("f", interp.program.functions)

    def test_spinning_global_initializer_cannot_block_load(self) -> None:
        began = time.monotonic()
        interp = _interp(
            "int spin() { while (true) { } return 0; } int g = spin(); int after = 4; void loop() { }",
            init_budget_ms=100,
        )
        self.assertLess(time.monotonic() - began, 1.0)
        self.assertFalse(interp.is_running())
        self.assertEqual(interp.get_variable("g"), 0)
        self.assertEqual(interp.get_variable("after"), 0)
        self.assertTrue(any("'g'" in d.message for d in interp.diagnostics))

    def test_delaying_global_initializer_cannot_block_load(self) -> None:
        began = time.monotonic()
        interp = _interp("int wait() { delay(60000); return 1; } int g = wait();", init_budget_ms=100)
        self.assertLess(time.monotonic() - began, 1.0)
        self.assertEqual(interp.get_variable("g"), 0)
        self.assertTrue(any("halted" in d.message for d in interp.diagnostics))

    def test_stop_interrupts_global_initialization(self) -> None:
        interp = RoboInterpreter(config=RuntimeConfig(init_budget_ms=60000), io_handler=NullIO())
        loader = threading.Thread(target=interp.load, args=("int wait() { delay(60000); return 1; } int g = wait();",))
        loader.start()
        self.assertTrue(wait_for(lambda: interp._evaluator.deadline is not None))
        interp.stop()
        loader.join(2.0)
        self.assertFalse(loader.is_alive())
        self.assertEqual(interp.get_variable("g"), 0)

    def test_stop_halts_a_host_call(self) -> None:
        interp = _interp("int reached; void spin() { reached = 1; while (true) { } }")
        results = []
        caller = threading.Thread(target=lambda: results.append(interp.call("spin")))
        caller.start()
        self.assertTrue(wait_for(lambda: interp.get_variable("reached") == 1))
        interp.stop()
        caller.join(2.0)
        self.assertFalse(caller.is_alive())
        self.assertEqual(results, [None])

    def test_call_is_refused_while_running(self) -> None:
        interp = self._start("void loop() { delay(5); } void f() { }")
        with self.assertRaises(RoboError):
            interp.call("f")

    def test_script_faults_are_contained(self) -> None:
        interp = _interp("void loop() { forward(); }")

        def boom():
            raise ValueError("motor driver fault")

        interp._evaluator.intrinsics["forward"] = Intrinsic("forward", boom, 0)
        self.interp = interp
        with self.assertLogs("robo_lang.interpreter", level="ERROR"):
            interp.start()
            self.assertTrue(wait_for(lambda: not interp.is_running()))
        self.assertTrue(any("motor driver fault" in d.message for d in interp.diagnostics))
        interp.stop()


class DriverHardwareTests(unittest.TestCase):
    def setUp(self) -> None:
        self.interp = None

    def tearDown(self) -> None:
        if self.interp is not None:
            self.interp.stop()

    def _start(self, source: str, **settings) -> RoboInterpreter:
        self.interp = _interp(source, **settings)
        self.interp.start()
        return self.interp

    def test_pin_round_trip(self) -> None:
        interp = self._start("void setup() { digitalWrite(5, 255); digitalWrite(6, 0); } void loop() { delay(5); }")
        self.assertTrue(wait_for(lambda: 6 in interp.pins()))
        self.assertEqual(interp.get_pin_value(5), 255)
        self.assertEqual(interp.get_pin_value(6), 0)

    def test_host_pin_writes(self) -> None:
        interp = _interp("void f() { }")
        interp.set_pin_value(13, 1)
        self.assertEqual(interp.get_pin_value(13), 1)
        self.assertEqual(interp.pins(), {13: 1})

    def test_sensor_values_reach_the_script(self) -> None:
        interp = self._start("float dist; void loop() { dist = pulseIn(3, HIGH, 30000) * 0.034 / 2; delay(1); }")
        interp.set_sensor_value(3, 42.0)
        self.assertTrue(wait_for(lambda: abs(interp.get_variable("dist") - 42.0) < 1e-6))

    def test_set_variable_while_running_applies_at_next_suspension(self) -> None:
        interp = self._start("int speed; void loop() { analogWrite(9, speed); delay(1); }")
        interp.set_variable("speed", 120)
        self.assertTrue(wait_for(lambda: interp.get_pin_value(9) == 120))
        self.assertEqual(interp.get_variable("speed"), 120)

    def test_set_variable_while_idle_applies_immediately(self) -> None:
        interp = _interp("int speed; float gain;")
        interp.set_variable("speed", 7.8)
        interp.set_variable("gain", 0.5)
        self.assertEqual(interp.get_variable("speed"), 7)
        self.assertEqual(interp.get_variable("gain"), 0.5)

    def test_set_variable_ignores_undeclared_names(self) -> None:
        interp = _interp("int speed;")
        interp.set_variable("ghost", 1)
        self.assertIsNone(interp.get_variable("ghost"))
        interp.start()
        self.interp = interp
        interp.set_variable("ghost", 1)
        self.assertEqual(interp.bus.drain_injections(), {})

    def test_writes_queued_after_a_run_do_not_override_setup(self) -> None:
        interp = _interp("int mode; int loops; void setup() { mode = 1; } void loop() { loops++; delay(1); }")
        self.interp = interp
        interp.bus.inject("mode", 7)
        interp.start()
        self.assertTrue(wait_for(lambda: interp.get_variable("loops") >= 3))
        self.assertEqual(interp.get_variable("mode"), 1)
        self.assertEqual(interp.bus.drain_injections(), {})


if __name__ == "__main__":
    unittest.main(verbosity=2)

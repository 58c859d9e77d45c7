from __future__ import annotations

import unittest

from canon_runner import execute_fixture, load_fixture, wait_for

from robo_lang import RuntimeConfig


class CanonTests(unittest.TestCase):
    # I. Expressions

    def test_precedence_and_arithmetic(self) -> None:
        r = execute_fixture("precedence.ino")
        self.assertIsNone(r.error)
        self.assertEqual(r.lines, ["14", "3", "20", "1", "-1", "3.5", "0", "0", "true"])

    def test_loops_and_enums(self) -> None:
        r = execute_fixture("loops.ino")
        self.assertIsNone(r.error)
        self.assertEqual(r.lines, ["3", "1", "5", "9", "1", "6", "7"])
        self.assertEqual(r.diagnostics, [])

    # II. Storage

    def test_struct_defaults_copies_and_references(self) -> None:
        r = execute_fixture("structs.ino")
        self.assertIsNone(r.error)
        self.assertEqual(r.lines, ["0", "0", "4", "2.5", "4", "7", "7", "97"])

    def test_reference_parameters_and_returns(self) -> None:
        r = execute_fixture("references.ino")
        self.assertIsNone(r.error)
        self.assertEqual(r.lines, ["1", "1", "2", "40", "42"])

    def test_pile_order(self) -> None:
        r = execute_fixture("piles.ino")
        self.assertIsNone(r.error)
        self.assertEqual(r.lines, ["2", "1", "0", "7"])

    # III. Whole programs

    def test_maze_solver_parses_cleanly(self) -> None:
        interpreter = load_fixture("maze_solver.ino")
        self.assertEqual(interpreter.diagnostics, [])
        self.assertIn("solveMaze", interpreter.program.functions)
        self.assertEqual(interpreter.get_variable("pathStack"), [])
        self.assertEqual(interpreter.get_variable("WALL_DIST"), 20)

    def test_maze_solver_stops_at_open_corridor(self) -> None:
        interpreter = load_fixture("maze_solver.ino", config=RuntimeConfig(turn_ms=1))
        interpreter.set_sensor_value(3, 150.0)
        interpreter.set_pin_value(5, 255)
        interpreter.start()
        try:
            self.assertTrue(wait_for(lambda: interpreter.get_pin_value(5) == 0))
            self.assertTrue(interpreter.is_running())
        finally:
            interpreter.stop()
        self.assertFalse(interpreter.is_running())
        self.assertGreaterEqual(interpreter.get_variable("distF"), 149)
        self.assertEqual(interpreter.get_variable("pathStack"), [])

    def test_maze_solver_takes_right_branch(self) -> None:
        interpreter = load_fixture("maze_solver.ino", config=RuntimeConfig(turn_ms=1))
        interpreter.set_sensor_value(7, 50.0)
        interpreter.start()
        try:
            self.assertTrue(wait_for(lambda: interpreter.get_variable("pathStack") == [2]))
        finally:
            interpreter.stop()
        self.assertFalse(interpreter.is_running())


if __name__ == "__main__":
    unittest.main(verbosity=2)

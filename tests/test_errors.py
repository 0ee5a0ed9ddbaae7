"""Unit tests for the error taxonomy and Outcome."""

import unittest

from ekfslam.errors import (
    ErrorKind,
    InvalidInputError,
    LandmarkIndexError,
    NumericalDegeneracyError,
    Outcome,
    SlamError,
    error_kind_of,
)


class TestErrorKinds(unittest.TestCase):

    def test_mapping(self):
        self.assertIs(error_kind_of(InvalidInputError("x")), ErrorKind.INVALID_INPUT)
        self.assertIs(error_kind_of(LandmarkIndexError("x")), ErrorKind.INDEX_CONTRACT)
        self.assertIs(error_kind_of(NumericalDegeneracyError("x")), ErrorKind.NUMERICAL_DEGENERACY)

    def test_unregistered_error(self):
        with self.assertRaises(TypeError):
            error_kind_of(SlamError("generic"))

    def test_builtin_bases(self):
        self.assertTrue(issubclass(InvalidInputError, ValueError))
        self.assertTrue(issubclass(LandmarkIndexError, IndexError))
        self.assertTrue(issubclass(NumericalDegeneracyError, ArithmeticError))


class TestOutcome(unittest.TestCase):

    def test_success(self):
        outcome = Outcome.success(3)
        self.assertTrue(outcome)
        self.assertEqual(outcome.unwrap(), 3)
        self.assertIsNone(outcome.error_kind)

    def test_failure(self):
        outcome = Outcome.failure(NumericalDegeneracyError("S is singular"))
        self.assertFalse(outcome)
        self.assertIs(outcome.error_kind, ErrorKind.NUMERICAL_DEGENERACY)
        self.assertEqual(outcome.message, "S is singular")
        with self.assertRaisesRegex(NumericalDegeneracyError, "S is singular"):
            outcome.unwrap()


if __name__ == "__main__":
    unittest.main()

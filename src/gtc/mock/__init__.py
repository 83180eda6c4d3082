"""Throwaway repository fixtures built from a declarative description."""

from .builder import Mock, MockCommit, MockOpt, mk_test_name, new_mock

__all__ = ["Mock", "MockCommit", "MockOpt", "mk_test_name", "new_mock"]

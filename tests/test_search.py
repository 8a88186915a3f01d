"""
Unit tests for search/filter and saved searches.
"""

import unittest

from examplanner.config import ExamPlannerConfig
from examplanner.model import UserAccount, ViewMode
from examplanner.search import filter_exams, is_current_term, save_search, split_query

from tests.helpers import FakeAccount, make_exam


class TestFilterExams(unittest.TestCase):
    def setUp(self) -> None:
        self.comp202 = make_exam("COMP 202")
        self.comp250 = make_exam("COMP 250")
        self.math240 = make_exam("MATH 240")
        self.old_comp202 = make_exam("COMP 202", year="F2025")
        self.universe = [self.comp202, self.comp250, self.math240, self.old_comp202]

    def test_split_query_trims_and_uppercases(self) -> None:
        self.assertEqual(split_query(" comp 202 , math,, "), ["COMP 202", "MATH"])

    def test_empty_query_returns_nothing(self) -> None:
        self.assertEqual(filter_exams(self.universe, "  , "), [])

    def test_any_term_matches_course_substring(self) -> None:
        result = filter_exams(self.universe, "comp 2, math", ViewMode.CURRENT)
        self.assertEqual(result, [self.comp202, self.comp250, self.math240])

    def test_historical_view(self) -> None:
        result = filter_exams(self.universe, "COMP 202", ViewMode.HISTORICAL)
        self.assertEqual(result, [self.old_comp202])

    def test_configurable_current_terms(self) -> None:
        result = filter_exams(self.universe, "COMP 202", ViewMode.CURRENT, current_terms=["W2026", "F2025"])
        self.assertEqual(result, [self.comp202, self.old_comp202])

    def test_is_current_term_default(self) -> None:
        self.assertTrue(is_current_term("W2026"))
        self.assertTrue(is_current_term(" w2026 "))
        self.assertFalse(is_current_term("F2025"))

    def test_default_terms_match_config_default(self) -> None:
        for term in ExamPlannerConfig.model_fields["current_terms"].default_factory():
            self.assertTrue(is_current_term(term))


class TestSaveSearch(unittest.TestCase):
    def test_guest_cannot_save(self) -> None:
        account = FakeAccount()
        self.assertFalse(save_search(account, "COMP"))
        self.assertEqual(account.updates, [])

    def test_new_search_is_prepended(self) -> None:
        account = FakeAccount(user=UserAccount(id="u1", name="Ada", email="a@x", saved_searches=["MATH"]))
        self.assertTrue(save_search(account, "  COMP 202, MATH 240 "))
        self.assertEqual(account.user.saved_searches, ["COMP 202, MATH 240", "MATH"])

    def test_existing_search_is_not_saved_twice(self) -> None:
        account = FakeAccount(user=UserAccount(id="u1", name="Ada", email="a@x", saved_searches=["MATH"]))
        self.assertTrue(save_search(account, "MATH"))
        self.assertEqual(account.updates, [])

    def test_blank_search_is_ignored(self) -> None:
        account = FakeAccount(user=UserAccount(id="u1", name="Ada", email="a@x"))
        self.assertFalse(save_search(account, "   "))


if __name__ == "__main__":
    unittest.main()

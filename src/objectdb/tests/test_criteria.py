import unittest

from objectdb.criteria import filter_records, matches


class TestCriteria(unittest.TestCase):
    def test_empty_or_missing_criteria_match_everything(self) -> None:
        self.assertTrue(matches({"a": 1}, None))
        self.assertTrue(matches({"a": 1}, {}))

    def test_literal_equality(self) -> None:
        self.assertTrue(matches({"a": "x", "b": 1}, {"a": "x", "b": 1}))
        self.assertFalse(matches({"a": "x", "b": 1}, {"a": "x", "b": 2}))
        self.assertFalse(matches({"a": "x"}, {"b": 1}))
        self.assertTrue(matches({"a": "x"}, {"b": None}))

    def test_alternatives(self) -> None:
        self.assertTrue(matches({"a": "b"}, {"a": ["a", "b"]}))
        self.assertTrue(matches({"a": 2}, {"a": (1, 2)}))
        self.assertTrue(matches({"a": 2}, {"a": {1, 2}}))
        self.assertFalse(matches({"a": "c"}, {"a": ["a", "b"]}))

    def test_filter_keeps_order(self) -> None:
        records = [
            {"a": "a", "b": 1},
            {"a": "b", "b": 1},
            {"a": "a", "b": 2},
            {"a": "b", "b": 2},
        ]
        result = filter_records(records, {"a": ["a", "b"], "b": 1})
        self.assertEqual(result, [records[0], records[1]])


if __name__ == "__main__":
    unittest.main()

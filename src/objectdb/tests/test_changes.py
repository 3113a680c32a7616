import unittest

from objectdb.changes import Change, ChangeLog


class TestChangeLog(unittest.TestCase):
    def test_updates_for_same_record_are_merged(self) -> None:
        record = {"id": 1}
        changes = ChangeLog()
        changes.create("Order", record)
        changes.update("Order", record, ["status"])
        changes.update("Order", record, ["line_items", "status"])
        self.assertEqual(len(changes), 2)
        self.assertEqual(changes.changes[1].props, ["status", "line_items"])
        self.assertEqual(
            changes.to_dicts(),
            [
                {"entity_type": "Order", "kind": "create"},
                {"entity_type": "Order", "kind": "update", "props": ["status", "line_items"]},
            ],
        )

    def test_updates_compare_records_by_reference(self) -> None:
        first = {"id": 1}
        second = {"id": 1}
        changes = ChangeLog()
        changes.update("Order", first, ["a"])
        changes.update("Order", second, ["b"])
        self.assertEqual(len(changes.of_kind("update")), 2)
        self.assertEqual([c.props for c in changes.for_record(second)], [["b"]])

    def test_records_are_distinct_and_ordered(self) -> None:
        order = {"id": 1}
        item = {"order_id": 1}
        changes = ChangeLog()
        changes.create("Order", order)
        changes.create("LineItem", item)
        changes.update("Order", order, ["line_items"])
        changes.delete("LineItem", item)
        self.assertEqual(
            [(entity, record is order) for entity, record in changes.records()],
            [("Order", True), ("LineItem", False)],
        )
        self.assertEqual(len(changes.records(kind="delete")), 1)
        self.assertIs(changes.records(kind="delete")[0][1], item)

    def test_empty_log_is_falsy(self) -> None:
        changes = ChangeLog()
        self.assertFalse(changes)
        self.assertEqual(list(changes), [])
        changes.create("Order", {})
        self.assertTrue(changes)

    def test_change_props_are_deduplicated(self) -> None:
        change = Change("Order", {}, "update", ["a", "b", "a"])
        self.assertEqual(change.props, ["a", "b"])
        change.add_props(["c", "b"])
        self.assertEqual(change.props, ["a", "b", "c"])

    def test_rejects_unknown_kind(self) -> None:
        with self.assertRaises(ValueError):
            Change("Order", {}, "upsert")  # type: ignore[arg-type]
        with self.assertRaises(TypeError):
            ChangeLog().add({"kind": "create"})  # type: ignore[arg-type]


if __name__ == "__main__":
    unittest.main()

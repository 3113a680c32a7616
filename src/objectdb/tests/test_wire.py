import unittest

from objectdb.changes import ChangeLog
from objectdb.errors import MissingTypeError
from objectdb.store import ObjectStore


def _order_schema() -> dict:
    return {
        "Order": {
            "identity_properties": ["id"],
            "relationships": {
                "line_items": {
                    "one_to_many": True,
                    "own_foreign_key": "id",
                    "target_entity": "LineItem",
                    "target_foreign_key": "order_id",
                }
            },
        },
        "LineItem": {
            "identity_properties": ["order_id", "product_id"],
            "relationships": {
                "order": {
                    "many_to_one": True,
                    "own_foreign_key": "order_id",
                    "target_entity": "Order",
                    "target_foreign_key": "id",
                },
            },
        },
    }


def _passport_schema() -> dict:
    return {
        "Person": {
            "identity_properties": ["id"],
            "relationships": {
                "passport": {
                    "many_to_one": True,
                    "own_foreign_key": "passport_id",
                    "target_entity": "Passport",
                    "target_foreign_key": "id",
                    "mirror_relationship": "holder",
                }
            },
        },
        "Passport": {
            "identity_properties": ["id"],
            "relationships": {
                "holder": {
                    "many_to_one": True,
                    "own_foreign_key": "holder_id",
                    "target_entity": "Person",
                    "target_foreign_key": "id",
                    "mirror_relationship": "passport",
                }
            },
        },
    }


class TestWireClosure(unittest.TestCase):
    def test_target_first_then_referencing_record(self) -> None:
        store = ObjectStore(_order_schema())
        order = {"id": 1}
        item = {"order_id": 1, "product_id": "p1"}
        store.integrate(order, "Order")
        changes = store.integrate(item, "LineItem")
        self.assertIs(item["order"], order)
        self.assertEqual(len(order["line_items"]), 1)
        self.assertIs(order["line_items"][0], item)
        self.assertEqual(changes.for_record(order)[0].props, ["line_items"])

    def test_referencing_record_first_then_target(self) -> None:
        store = ObjectStore(_order_schema())
        first = {"order_id": 1, "product_id": "p1"}
        second = {"order_id": 1, "product_id": "p2"}
        other = {"order_id": 2, "product_id": "p1"}
        store.integrate([first, second, other], "LineItem")
        self.assertNotIn("order", first)

        order = {"id": 1}
        store.integrate(order, "Order")
        self.assertEqual([item["product_id"] for item in order["line_items"]], ["p1", "p2"])
        self.assertIs(first["order"], order)
        self.assertIs(second["order"], order)
        self.assertNotIn("order", other)

    def test_one_to_many_is_not_duplicated(self) -> None:
        store = ObjectStore(_order_schema())
        order = {"id": 1}
        item = {"order_id": 1, "product_id": "p1"}
        store.integrate(order, "Order")
        store.integrate(item, "LineItem")
        changes = store.wire(order, "Order")
        self.assertEqual(len(changes), 0)
        self.assertEqual(len(order["line_items"]), 1)

    def test_wire_records_added_directly(self) -> None:
        store = ObjectStore(_order_schema())
        order = {"_type": "Order", "id": 1}
        item = {"_type": "LineItem", "order_id": 1, "product_id": "p1"}
        store.get_objects("Order").append(order)
        store.get_objects("LineItem").append(item)
        changes = ChangeLog()
        returned = store.wire(item, changes=changes)
        self.assertIs(returned, changes)
        self.assertIs(item["order"], order)
        self.assertIs(order["line_items"][0], item)
        self.assertEqual(
            changes.to_dicts(),
            [
                {"entity_type": "LineItem", "kind": "update", "props": ["order"]},
                {"entity_type": "Order", "kind": "update", "props": ["line_items"]},
            ],
        )

    def test_missing_foreign_key_links_nothing(self) -> None:
        store = ObjectStore(_order_schema())
        orphan = {"product_id": "p1"}
        store.integrate({"id": None}, "Order")
        store.integrate(orphan, "LineItem")
        self.assertNotIn("order", orphan)

    def test_wire_requires_type(self) -> None:
        store = ObjectStore(_order_schema())
        with self.assertRaises(MissingTypeError):
            store.wire({"id": 1})


class TestMirroredOneToOne(unittest.TestCase):
    def setUp(self) -> None:
        self.store = ObjectStore(_passport_schema())

    def test_one_side_sets_the_other(self) -> None:
        passport = {"id": "X1"}
        self.store.integrate(passport, "Passport")
        person = {"id": 7, "passport_id": "X1"}
        changes = self.store.integrate(person, "Person")
        self.assertIs(person["passport"], passport)
        self.assertIs(passport["holder"], person)
        self.assertEqual(passport["holder_id"], 7)
        self.assertEqual(changes.for_record(passport)[0].props, ["holder_id", "holder"])

    def test_other_side_first(self) -> None:
        person = {"id": 7}
        self.store.integrate(person, "Person")
        passport = {"id": "X1", "holder_id": 7}
        self.store.integrate(passport, "Passport")
        self.assertIs(passport["holder"], person)
        self.assertIs(person["passport"], passport)
        self.assertEqual(person["passport_id"], "X1")

    def test_unwire_clears_both_sides(self) -> None:
        passport = {"id": "X1"}
        person = {"id": 7, "passport_id": "X1"}
        self.store.integrate([passport], "Passport")
        self.store.integrate([person], "Person")
        changes = self.store.unwire(person, "Person")
        self.assertIsNone(person["passport"])
        self.assertIsNone(passport["holder"])
        self.assertEqual(person["passport_id"], "X1")
        self.assertEqual(passport["holder_id"], 7)
        self.assertEqual(
            sorted((c.entity_type, tuple(c.props)) for c in changes),
            [("Passport", ("holder",)), ("Person", ("passport",))],
        )


class TestUnwire(unittest.TestCase):
    def test_unwire_clears_references_and_keeps_keys(self) -> None:
        store = ObjectStore(_order_schema())
        order = {"id": 1}
        first = {"order_id": 1, "product_id": "p1"}
        second = {"order_id": 1, "product_id": "p2"}
        store.integrate([order], "Order")
        store.integrate([first, second], "LineItem")

        store.unwire(first, "LineItem")
        self.assertIsNone(first["order"])
        self.assertEqual(first["order_id"], 1)
        self.assertEqual(len(order["line_items"]), 1)
        self.assertIs(order["line_items"][0], second)

        store.unwire(order, "Order")
        self.assertEqual(order["line_items"], [])
        self.assertIsNone(second["order"])

    def test_unwire_without_links_logs_nothing(self) -> None:
        store = ObjectStore(_order_schema())
        order = {"id": 1}
        store.integrate(order, "Order")
        self.assertEqual(len(store.unwire(order, "Order")), 0)


if __name__ == "__main__":
    unittest.main()

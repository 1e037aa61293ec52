import unittest
from datetime import date

from repairdesk.models import Expense, InventoryItem, RepairTicket, Warranty
from repairdesk.validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_expense,
    enforce_rules_inventory_item,
    enforce_rules_ticket,
    enforce_rules_warranty,
    validate_payload,
    MAX_PRICE_CENTS,
)


ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"name", "sku", "current_quantity", "unit_price_cents"},
    required_on_create={"name"},
)

TICKET_POLICY = ModelValidationPolicy(
    writable_fields={"status", "priority", "actual_completion_date", "device_type"},
)


class ValidatePayloadTests(unittest.TestCase):

    def test_missing_required(self):
        with self.assertRaises(ValidationError) as ctx:
            validate_payload(model=InventoryItem, payload={}, policy=ITEM_POLICY, partial=False)
        self.assertIn("name", str(ctx.exception))

    def test_partial_skips_required(self):
        patch = validate_payload(model=InventoryItem, payload={"sku": " A1 "}, policy=ITEM_POLICY, partial=True)
        self.assertEqual(patch, {"sku": "A1"})

    def test_field_not_allowed(self):
        with self.assertRaises(ValidationError):
            validate_payload(model=InventoryItem, payload={"name": "x", "store_id": 2}, policy=ITEM_POLICY, partial=False)

    def test_integer_coercion(self):
        patch = validate_payload(
            model=InventoryItem, payload={"name": "x", "current_quantity": "12"}, policy=ITEM_POLICY, partial=False
        )
        self.assertEqual(patch["current_quantity"], 12)

    def test_rejects_decimal_and_scientific_quantities(self):
        for raw in (1.5, "1.5", "1e3", "abc", True):
            with self.subTest(raw=raw):
                with self.assertRaises(ValidationError):
                    validate_payload(
                        model=InventoryItem,
                        payload={"name": "x", "current_quantity": raw},
                        policy=ITEM_POLICY,
                        partial=False,
                    )

    def test_blank_required_string(self):
        with self.assertRaises(ValidationError):
            validate_payload(model=InventoryItem, payload={"name": "   "}, policy=ITEM_POLICY, partial=False)

    def test_not_nullable(self):
        with self.assertRaises(ValidationError):
            validate_payload(model=InventoryItem, payload={"name": None}, policy=ITEM_POLICY, partial=True)

    def test_date_parsing(self):
        patch = validate_payload(
            model=RepairTicket,
            payload={"actual_completion_date": "2024-01-10"},
            policy=TICKET_POLICY,
            partial=True,
        )
        self.assertEqual(patch["actual_completion_date"], date(2024, 1, 10))

        patch = validate_payload(
            model=RepairTicket,
            payload={"actual_completion_date": "2024-01-10T00:00:00.000Z"},
            policy=TICKET_POLICY,
            partial=True,
        )
        self.assertEqual(patch["actual_completion_date"], date(2024, 1, 10))

    def test_bad_date(self):
        with self.assertRaises(ValidationError):
            validate_payload(
                model=RepairTicket,
                payload={"actual_completion_date": "10/01/2024"},
                policy=TICKET_POLICY,
                partial=True,
            )


class BusinessRuleTests(unittest.TestCase):

    def test_inventory_rules(self):
        with self.assertRaises(ValidationError):
            enforce_rules_inventory_item({"current_quantity": -1})
        with self.assertRaises(ValidationError):
            enforce_rules_inventory_item({"unit_price_cents": MAX_PRICE_CENTS + 1})
        enforce_rules_inventory_item({"current_quantity": 0, "unit_price_cents": 0})

    def test_expense_rules(self):
        with self.assertRaises(ValidationError):
            enforce_rules_expense({"quantity": -2})
        with self.assertRaises(ValidationError):
            enforce_rules_expense({"price_cents": -1})

    def test_ticket_rules(self):
        with self.assertRaises(ValidationError):
            enforce_rules_ticket({"status": "done"})
        with self.assertRaises(ValidationError):
            enforce_rules_ticket({"priority": "critical"})
        with self.assertRaises(ValidationError):
            enforce_rules_ticket({"customer_email": "not-an-email"})
        enforce_rules_ticket({"status": "waiting_parts", "priority": "urgent"})

    def test_warranty_rules(self):
        with self.assertRaises(ValidationError):
            enforce_rules_warranty({"warranty_type": "screen"})
        with self.assertRaises(ValidationError):
            enforce_rules_warranty({"warranty_period_days": 0})
        enforce_rules_warranty({"warranty_type": "both", "status": "voided", "warranty_period_days": 365})

    def test_expense_model_fields(self):
        patch = validate_payload(
            model=Expense,
            payload={"name": "Screen", "quantity": 2, "price_cents": 4500},
            policy=ModelValidationPolicy(writable_fields={"name", "quantity", "price_cents"}),
            partial=True,
        )
        self.assertEqual(patch["quantity"], 2)

    def test_warranty_model_rejects_status_on_create_policy(self):
        with self.assertRaises(ValidationError):
            validate_payload(
                model=Warranty,
                payload={"ticket_id": 1, "status": "claimed"},
                policy=ModelValidationPolicy(writable_fields={"ticket_id"}),
                partial=False,
            )


if __name__ == "__main__":
    unittest.main()

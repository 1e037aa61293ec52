# Overview: Pytest coverage for the repair ticket lifecycle.

from datetime import date, timedelta

import pytest

from repairdesk.models import Customer, Expense, RepairTicket, TicketImage, Warranty, WarrantyClaim
from repairdesk.services import expense_service, inventory_service, store_service, ticket_service, warranty_service
from repairdesk.time_utils import utctoday
from repairdesk.validation import NotFoundError, ValidationError


class TestIntake:

    def test_status_forced_to_pending(self, db_session, store_a, make_ticket):
        ticket = make_ticket(store_a, status="completed", priority="high")
        assert ticket.status == "pending"
        assert ticket.priority == "high"
        assert db_session.query(Warranty).count() == 0

    def test_priority_defaults_to_medium(self, db_session, store_a, make_ticket):
        assert make_ticket(store_a).priority == "medium"

    def test_ticket_numbers_are_sequential_per_store(self, db_session, store_a, store_b, make_ticket):
        first = make_ticket(store_a)
        second = make_ticket(store_a)
        other = make_ticket(store_b)

        assert first.ticket_number == f"TK-{store_a.id:03d}-00001"
        assert second.ticket_number == f"TK-{store_a.id:03d}-00002"
        assert other.ticket_number == f"TK-{store_b.id:03d}-00001"

    def test_customer_reused_by_email_and_refreshed(self, db_session, store_a, make_ticket):
        first = make_ticket(store_a, email="Jane@Example.com", name="Jane", customer_phone="555-0001")
        second = make_ticket(store_a, email="jane@example.com", name="Jane Doe", customer_phone="555-0002")

        assert first.customer_id == second.customer_id
        customer = db_session.get(Customer, first.customer_id)
        assert customer.email == "jane@example.com"
        assert customer.name == "Jane Doe"
        assert customer.phone == "555-0002"

    def test_customers_are_per_store(self, db_session, store_a, store_b, make_ticket):
        a = make_ticket(store_a)
        b = make_ticket(store_b)
        assert a.customer_id != b.customer_id

    def test_customer_email_required(self, db_session, store_a):
        with pytest.raises(ValidationError):
            ticket_service.create_ticket(store_a.id, {
                "customer_name": "Nobody",
                "device_type": "Phone",
                "issue_description": "Dead",
            })
        assert db_session.query(RepairTicket).count() == 0


class TestCompletion:

    def test_completion_creates_warranty_from_completion_date(self, db_session, store_a, make_ticket):
        ticket = make_ticket(store_a)

        ticket_service.update_ticket(store_a.id, ticket.id, {
            "status": "completed",
            "actual_completion_date": date(2024, 1, 10),
        })

        warranty = db_session.query(Warranty).filter_by(ticket_id=ticket.id).one()
        assert warranty.start_date == date(2024, 1, 10)
        assert warranty.expiry_date == date(2024, 2, 9)
        assert warranty.warranty_period_days == 30
        assert warranty.status == "active"
        assert warranty.customer_id == ticket.customer_id

    def test_completion_twice_creates_one_warranty(self, db_session, store_a, make_ticket):
        ticket = make_ticket(store_a)

        ticket_service.update_ticket(store_a.id, ticket.id, {"status": "completed"})
        ticket_service.update_ticket(store_a.id, ticket.id, {"status": "in_progress"})
        ticket_service.update_ticket(store_a.id, ticket.id, {"status": "completed"})

        assert db_session.query(Warranty).filter_by(ticket_id=ticket.id).count() == 1

    def test_resaving_completed_ticket_does_not_touch_warranty(self, db_session, store_a, make_ticket):
        ticket = make_ticket(store_a)
        ticket_service.update_ticket(store_a.id, ticket.id, {"status": "completed"})
        ticket_service.update_ticket(store_a.id, ticket.id, {"status": "completed", "notes": "Picked up"})
        assert db_session.query(Warranty).count() == 1

    def test_missing_completion_date_falls_back_to_today(self, db_session, store_a, make_ticket):
        ticket = make_ticket(store_a)
        ticket_service.update_ticket(store_a.id, ticket.id, {"status": "completed"})
        warranty = warranty_service.get_warranty_by_ticket(store_a.id, ticket.id)
        assert warranty.start_date == utctoday()

    def test_store_configured_period_is_used(self, db_session, store_a, make_ticket):
        store_service.set_default_warranty_period_days(store_a.id, 90)
        ticket = make_ticket(store_a)
        ticket_service.update_ticket(store_a.id, ticket.id, {
            "status": "completed",
            "actual_completion_date": date(2024, 1, 10),
        })
        warranty = db_session.query(Warranty).filter_by(ticket_id=ticket.id).one()
        assert warranty.warranty_period_days == 90
        assert warranty.expiry_date == date(2024, 1, 10) + timedelta(days=90)

    def test_injected_period_wins(self, db_session, store_a, make_ticket):
        store_service.set_default_warranty_period_days(store_a.id, 90)
        ticket = make_ticket(store_a)
        ticket_service.update_ticket(
            store_a.id,
            ticket.id,
            {"status": "completed", "actual_completion_date": date(2024, 1, 10)},
            default_warranty_period_days=14,
        )
        warranty = db_session.query(Warranty).filter_by(ticket_id=ticket.id).one()
        assert warranty.expiry_date == date(2024, 1, 24)

    def test_other_statuses_do_not_create_warranty(self, db_session, store_a, make_ticket):
        ticket = make_ticket(store_a)
        for status in ("in_progress", "waiting_parts", "cancelled", "pending"):
            ticket_service.update_ticket(store_a.id, ticket.id, {"status": status})
        assert db_session.query(Warranty).count() == 0

    def test_update_in_other_store_is_not_found(self, db_session, store_a, store_b, make_ticket):
        ticket = make_ticket(store_a)
        with pytest.raises(NotFoundError):
            ticket_service.update_ticket(store_b.id, ticket.id, {"status": "completed"})
        assert db_session.query(Warranty).count() == 0

    def test_customer_edit_moves_ticket_to_other_customer(self, db_session, store_a, make_ticket):
        ticket = make_ticket(store_a)
        updated = ticket_service.update_ticket(store_a.id, ticket.id, {
            "customer_email": "new@example.com",
            "customer_name": "New Owner",
        })
        assert updated.customer.email == "new@example.com"
        assert db_session.query(Customer).count() == 2


class TestDeletion:

    def test_delete_cascades_but_keeps_consumed_stock(self, db_session, store_a, make_item, make_ticket):
        item = make_item(store_a, quantity=10)
        ticket = make_ticket(store_a)
        expense_service.create_expense(
            store_a.id, ticket.id, name="Screen", quantity=3, price_cents=100, inventory_item_id=item.id
        )
        ticket_service.add_ticket_image(store_a.id, ticket.id, file_name="front.jpg", file_path="t/front.jpg")
        ticket_service.update_ticket(store_a.id, ticket.id, {"status": "completed"})
        warranty = warranty_service.get_warranty_by_ticket(store_a.id, ticket.id)
        warranty_service.create_claim(store_a.id, warranty.id, "Screen flickers")

        assert ticket_service.delete_ticket(store_a.id, ticket.id) is True

        assert db_session.query(RepairTicket).count() == 0
        assert db_session.query(Expense).count() == 0
        assert db_session.query(TicketImage).count() == 0
        assert db_session.query(Warranty).count() == 0
        assert db_session.query(WarrantyClaim).count() == 0
        # Not restored on ticket delete
        assert inventory_service.get_item(store_a.id, item.id).current_quantity == 7

    def test_delete_removes_image_blobs(self, app, db_session, store_a, make_ticket, tmp_path, monkeypatch):
        monkeypatch.setitem(app.config, "UPLOAD_FOLDER", str(tmp_path))
        blob = tmp_path / "tickets" / "back.jpg"
        blob.parent.mkdir()
        blob.write_bytes(b"jpeg")

        ticket = make_ticket(store_a)
        ticket_service.add_ticket_image(store_a.id, ticket.id, file_name="back.jpg", file_path="tickets/back.jpg")
        ticket_service.delete_ticket(store_a.id, ticket.id)

        assert not blob.exists()

    def test_missing_blob_does_not_block_delete(self, app, db_session, store_a, make_ticket, tmp_path, monkeypatch):
        monkeypatch.setitem(app.config, "UPLOAD_FOLDER", str(tmp_path))
        ticket = make_ticket(store_a)
        ticket_service.add_ticket_image(store_a.id, ticket.id, file_name="gone.jpg", file_path="gone.jpg")
        assert ticket_service.delete_ticket(store_a.id, ticket.id) is True

    def test_follow_up_reference_is_cleared(self, db_session, store_a, make_ticket):
        original = make_ticket(store_a)
        ticket_service.update_ticket(store_a.id, original.id, {"status": "completed"})
        warranty = warranty_service.get_warranty_by_ticket(store_a.id, original.id)
        claim = warranty_service.create_claim(store_a.id, warranty.id, "Again broken")

        follow_up = make_ticket(store_a, issue_description="Warranty repair")
        warranty_service.update_claim(store_a.id, claim.id, {"related_ticket_id": follow_up.id})

        ticket_service.delete_ticket(store_a.id, follow_up.id)

        assert warranty_service.get_claim(store_a.id, claim.id).related_ticket_id is None

    def test_delete_other_store_returns_false(self, db_session, store_a, store_b, make_ticket):
        ticket = make_ticket(store_a)
        assert ticket_service.delete_ticket(store_b.id, ticket.id) is False
        assert ticket_service.get_ticket(store_a.id, ticket.id) is not None


class TestImages:

    def test_add_list_delete(self, db_session, store_a, make_ticket):
        ticket = make_ticket(store_a)
        image = ticket_service.add_ticket_image(
            store_a.id, ticket.id, file_name="a.jpg", file_path="a.jpg", file_size=10, mime_type="image/jpeg"
        )
        assert [i.id for i in ticket_service.list_ticket_images(store_a.id, ticket.id)] == [image.id]
        assert ticket_service.delete_ticket_image(store_a.id, ticket.id, image.id) is True
        assert ticket_service.list_ticket_images(store_a.id, ticket.id) == []
        assert ticket_service.delete_ticket_image(store_a.id, ticket.id, image.id) is False


class TestListing:

    def test_filters(self, db_session, store_a, store_b, make_ticket):
        t1 = make_ticket(store_a, device_brand="Apple", priority="urgent")
        t2 = make_ticket(store_a, email="bob@example.com", name="Bob", device_brand="Samsung")
        make_ticket(store_b, device_brand="Apple")
        ticket_service.update_ticket(store_a.id, t2.id, {"status": "in_progress"})

        assert ticket_service.list_tickets(store_a.id)["count"] == 2
        assert ticket_service.list_tickets(store_a.id, search="apple")["count"] == 1
        assert ticket_service.list_tickets(store_a.id, search="bob")["items"][0]["id"] == t2.id
        assert ticket_service.list_tickets(store_a.id, status="pending,in_progress")["count"] == 2
        assert ticket_service.list_tickets(store_a.id, status="in_progress")["count"] == 1
        assert ticket_service.list_tickets(store_a.id, priority="urgent")["items"][0]["id"] == t1.id

    def test_get_by_number_is_store_scoped(self, db_session, store_a, store_b, make_ticket):
        ticket = make_ticket(store_a)
        assert ticket_service.get_ticket_by_number(store_a.id, ticket.ticket_number).id == ticket.id
        assert ticket_service.get_ticket_by_number(store_b.id, ticket.ticket_number) is None

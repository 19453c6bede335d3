from datetime import date

import pytest

from backoffice.models import ConsumptionRecord
from backoffice.services import consumption_service, settings_service
from backoffice.signals import consumption_deleted, consumption_recorded
from backoffice.validation import NotFoundError, ValidationError


class TestCreateRecord:

    def test_prices_with_company_discount(self, make_company, db_session):
        company = make_company(discount_bps=1000)
        record = consumption_service.create_record(
            company_id=company.id,
            consumed_on=date(2025, 3, 10),
            size="M",
            quantity=3,
            extra_items=[{"name": "Refrigerante", "unit_price_cents": 500, "quantity": 1}],
        )
        assert record.id is not None
        assert record.unit_price_cents == 1800
        assert record.meals_subtotal_cents == 5400
        assert record.extras_cents == 500
        assert record.discount_cents == 590
        assert record.total_price_cents == 5310
        assert record.discount_bps == 1000
        assert record.contact_name == "Maria"
        assert record.extra_items == [{"name": "Refrigerante", "unit_price_cents": 500, "quantity": 1}]

    def test_uses_stored_price_table(self, make_company, db_session):
        settings_service.save_price_table({"G": 2500})
        company = make_company()
        record = consumption_service.create_record(company.id, date(2025, 3, 10), "G", 2)
        assert record.total_price_cents == 5000

    def test_price_is_snapshotted(self, make_company, make_record, db_session):
        company = make_company()
        record = make_record(company, size="P", quantity=1)
        settings_service.save_price_table({"P": 9999})
        db_session.expire_all()
        assert db_session.get(ConsumptionRecord, record.id).total_price_cents == 1500

    def test_unknown_company(self, db_session):
        with pytest.raises(NotFoundError):
            consumption_service.create_record(999, date(2025, 3, 10), "M", 1)

    def test_inactive_company(self, make_company, db_session):
        company = make_company(is_active=False)
        with pytest.raises(ValidationError):
            consumption_service.create_record(company.id, date(2025, 3, 10), "M", 1)

    @pytest.mark.parametrize("quantity", [0, -2, "3", 1.5, True])
    def test_invalid_quantity(self, make_company, db_session, quantity):
        company = make_company()
        with pytest.raises(ValidationError):
            consumption_service.create_record(company.id, date(2025, 3, 10), "M", quantity)
        assert db_session.query(ConsumptionRecord).count() == 0

    def test_defaults_to_today(self, make_company, db_session):
        company = make_company()
        record = consumption_service.create_record(company.id, None, "P", 1)
        assert record.consumed_on is not None

    def test_emits_signal(self, make_company, db_session):
        company = make_company()
        received = []

        def listener(sender, **kwargs):
            received.append(sender)

        with consumption_recorded.connected_to(listener):
            record = consumption_service.create_record(company.id, date(2025, 3, 10), "P", 1)
        assert received == [record]


class TestDeleteRecord:

    def test_delete(self, make_company, make_record, db_session):
        record = make_record(make_company())
        received = []

        def listener(sender, **kwargs):
            received.append((sender, kwargs["company_id"]))

        with consumption_deleted.connected_to(listener):
            consumption_service.delete_record(record.id)
        assert db_session.query(ConsumptionRecord).count() == 0
        assert received == [(record.id, record.company_id)]

    def test_missing_id_is_an_error(self, db_session):
        with pytest.raises(NotFoundError):
            consumption_service.delete_record(12345)


class TestListAndSummarize:

    def test_filters(self, make_company, make_record, db_session):
        a = make_company("Alpha SA")
        b = make_company("Beta SA")
        make_record(a, consumed_on=date(2025, 3, 1))
        make_record(a, consumed_on=date(2025, 3, 2))
        make_record(b, consumed_on=date(2025, 3, 2))
        make_record(b, consumed_on=date(2025, 4, 1))

        assert len(consumption_service.list_records(consumed_on=date(2025, 3, 2))) == 2
        assert len(consumption_service.list_records(company_id=a.id)) == 2
        march = consumption_service.list_records(start=date(2025, 3, 1), end=date(2025, 4, 1))
        assert len(march) == 3
        assert len(consumption_service.list_records(limit=1)) == 1

    def test_summary(self, make_company, make_record, db_session):
        a = make_company("Alpha SA")
        b = make_company("Beta SA")
        records = [
            make_record(a, size="P", quantity=2),
            make_record(a, size="G", quantity=1,
                        extra_items=[{"name": "Suco", "unit_price_cents": 600, "quantity": 1}]),
            make_record(b, size="P", quantity=3),
        ]
        summary = consumption_service.summarize_records(records)
        assert summary["total_quantity"] == 6
        assert summary["quantity_by_size"] == {"P": 5, "M": 0, "G": 1}
        assert summary["total_value_cents"] == 3000 + 2200 + 600 + 4500
        assert summary["extras_value_cents"] == 600
        assert summary["company_count"] == 2
        assert summary["order_count"] == 3

    def test_empty_summary(self):
        summary = consumption_service.summarize_records([])
        assert summary["total_quantity"] == 0
        assert summary["company_count"] == 0

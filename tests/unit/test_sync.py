"""
Unit tests for RecordSynchronizer.

Runs against the in-memory Snowflake connection so the documents the
synchronizer writes can be read back through the repository.
"""

from datetime import date

import pytest

from poolcare.core.pools.models import (
    Client,
    InvalidTransitionError,
    Pool,
    Product,
    ProductUsage,
    Visit,
    VisitStatus,
    VolumeMode,
    WaterQuality,
)
from poolcare.core.scheduling.sync import (
    BackReferenceError,
    PoolReadings,
    RecordNotFoundError,
    RecordSynchronizer,
)
from poolcare.core.validation import RecordValidationError


USER_ID = "user-1"


class TestClients:

    def test_new_client_gets_an_id(self, synchronizer, repository):
        client = synchronizer.save_client(Client(name="Ana Lima", neighborhood="Jardins"))

        assert client.id
        stored = repository.get_client(USER_ID, client.id)
        assert stored.name == "Ana Lima"
        assert stored.pool_ids == []
        assert stored.created_at is not None

    def test_second_save_updates_instead_of_inserting(self, synchronizer, repository):
        client = synchronizer.save_client(Client(name="Ana Lima", neighborhood="Jardins"))
        client.phone = "555-0101"

        synchronizer.save_client(client)

        clients = repository.list_clients(USER_ID)
        assert len(clients) == 1
        assert clients[0].phone == "555-0101"

    def test_update_keeps_pool_list(self, synchronizer, repository, client_record, pool_record):
        form = Client(id=client_record.id, name="Maria S.", neighborhood="Centro")

        synchronizer.save_client(form)

        assert repository.get_client(USER_ID, client_record.id).pool_ids == [pool_record.id]

    def test_resubmitting_unchanged_form_is_a_no_op(self, synchronizer, repository, client_record):
        before = repository.get_client(USER_ID, client_record.id)
        form = Client(id=client_record.id, name="Maria Souza", neighborhood="Centro")

        synchronizer.save_client(form)

        after = repository.get_client(USER_ID, client_record.id)
        assert after.name == before.name
        assert after.neighborhood == before.neighborhood
        assert after.created_at == before.created_at
        assert len(repository.list_clients(USER_ID)) == 1

    def test_update_of_missing_client_raises(self, synchronizer):
        with pytest.raises(RecordNotFoundError):
            synchronizer.save_client(Client(id="nope", name="Ghost", neighborhood="Nowhere"))

    def test_invalid_client_is_not_written(self, synchronizer, repository):
        with pytest.raises(RecordValidationError) as exc_info:
            synchronizer.save_client(Client(name="A", neighborhood=""))

        assert set(exc_info.value.errors) == {"name", "neighborhood"}
        assert repository.list_clients(USER_ID) == []

    def test_clients_are_scoped_to_user(self, repository, client_record):
        other = RecordSynchronizer(repository, "user-2")
        other.save_client(Client(name="Someone Else", neighborhood="Sul"))

        assert [c.name for c in repository.list_clients(USER_ID)] == ["Maria Souza"]


class TestPools:

    def test_new_pool_is_linked_to_client(self, repository, client_record, pool_record):
        client = repository.get_client(USER_ID, client_record.id)
        assert client.pool_ids == [pool_record.id]

    def test_volume_is_computed_on_save(self, repository, client_record, pool_record):
        stored = repository.get_pool(USER_ID, client_record.id, pool_record.id)
        assert stored.volume == 48000

    def test_geometry_change_recomputes_volume(self, synchronizer, repository, pool_record):
        pool_record.length = 10

        synchronizer.save_pool(pool_record)

        stored = repository.get_pool(USER_ID, pool_record.client_id, pool_record.id)
        assert stored.volume == 60000

    def test_manual_volume_is_kept(self, synchronizer, repository, client_record):
        pool = synchronizer.save_pool(Pool(
            client_id=client_record.id,
            name="Spa",
            volume_mode=VolumeMode.MANUAL,
            volume=3500,
            length=2,
            width=2,
            average_depth=1,
        ))

        assert repository.get_pool(USER_ID, client_record.id, pool.id).volume == 3500

    def test_update_does_not_duplicate_reference(self, synchronizer, repository, pool_record):
        pool_record.name = "Renamed"

        synchronizer.save_pool(pool_record)

        client = repository.get_client(USER_ID, pool_record.client_id)
        assert client.pool_ids == [pool_record.id]

    def test_pool_for_missing_client_is_rejected(self, synchronizer, connection):
        with pytest.raises(RecordNotFoundError):
            synchronizer.save_pool(Pool(client_id="missing", name="Orphan"))

        assert connection._document_count() == 0

    def test_failed_link_rolls_back_pool(self, synchronizer, repository, client_record, monkeypatch):
        def broken_link(user_id, client_id, pool_id):
            raise RuntimeError("write quota exceeded")

        monkeypatch.setattr(repository, "add_pool_reference", broken_link)
        pool = Pool(client_id=client_record.id, name="Back pool", length=5, width=3, average_depth=1)

        with pytest.raises(BackReferenceError) as exc_info:
            synchronizer.save_pool(pool)

        assert exc_info.value.client_id == client_record.id
        assert pool.id is None
        assert repository.list_pools(USER_ID, client_record.id) == []

    def test_delete_unlinks_pool(self, synchronizer, repository, client_record, pool_record):
        synchronizer.delete_pool(client_record.id, pool_record.id)

        assert repository.list_pools(USER_ID, client_record.id) == []
        assert repository.get_client(USER_ID, client_record.id).pool_ids == []

    def test_delete_missing_pool_changes_nothing(self, synchronizer, repository, client_record, pool_record):
        with pytest.raises(RecordNotFoundError):
            synchronizer.delete_pool(client_record.id, "missing")

        assert repository.get_client(USER_ID, client_record.id).pool_ids == [pool_record.id]


class TestVisits:

    def test_new_visit_is_pending_with_client_name(self, repository, visit_record):
        stored = repository.get_visit(USER_ID, visit_record.id)

        assert stored.status == VisitStatus.PENDING
        assert stored.client_name == "Maria Souza"
        assert stored.user_id == USER_ID
        assert stored.scheduled_date == date(2024, 3, 15)

    def test_edit_cannot_change_status(self, synchronizer, repository, visit_record):
        synchronizer.complete_visit(visit_record.id)
        form = Visit(
            id=visit_record.id,
            client_id=visit_record.client_id,
            pool_id=visit_record.pool_id,
            scheduled_date=date(2024, 3, 16),
            time="10:00",
            status=VisitStatus.PENDING,
        )

        synchronizer.save_visit(form)

        stored = repository.get_visit(USER_ID, visit_record.id)
        assert stored.status == VisitStatus.COMPLETED
        assert stored.scheduled_date == date(2024, 3, 16)

    def test_edit_keeps_calendar_link(self, synchronizer, repository, visit_record):
        synchronizer.link_calendar_event(visit_record, "evt-9")
        form = Visit(
            id=visit_record.id,
            client_id=visit_record.client_id,
            pool_id=visit_record.pool_id,
            scheduled_date=visit_record.scheduled_date,
            time="11:00",
        )

        synchronizer.save_visit(form)

        assert repository.get_visit(USER_ID, visit_record.id).calendar_event_id == "evt-9"

    def test_edit_can_move_visit_to_another_client(self, synchronizer, repository, visit_record):
        other = synchronizer.save_client(Client(name="Joao Pereira", neighborhood="Sul"))
        other_pool = synchronizer.save_pool(Pool(
            client_id=other.id, name="Lap pool", length=10, width=3, average_depth=1.2
        ))
        synchronizer.link_calendar_event(visit_record, "evt-3")
        form = Visit(
            id=visit_record.id,
            client_id=other.id,
            pool_id=other_pool.id,
            scheduled_date=date(2024, 3, 20),
            time="08:00",
        )

        synchronizer.save_visit(form)

        stored = repository.get_visit(USER_ID, visit_record.id)
        assert stored.client_id == other.id
        assert stored.pool_id == other_pool.id
        assert stored.client_name == "Joao Pereira"
        assert stored.calendar_event_id == "evt-3"
        assert len(repository.list_visits(USER_ID)) == 1

    def test_move_to_missing_client_keeps_visit(self, synchronizer, repository, visit_record):
        form = Visit(
            id=visit_record.id,
            client_id="missing",
            pool_id=visit_record.pool_id,
            scheduled_date=visit_record.scheduled_date,
            time="10:00",
        )

        with pytest.raises(RecordNotFoundError):
            synchronizer.save_visit(form)

        stored = repository.get_visit(USER_ID, visit_record.id)
        assert stored.client_id == visit_record.client_id
        assert stored.time == "09:30"

    def test_bad_time_is_rejected(self, synchronizer, client_record, pool_record):
        with pytest.raises(RecordValidationError) as exc_info:
            synchronizer.save_visit(Visit(
                client_id=client_record.id,
                pool_id=pool_record.id,
                scheduled_date=date(2024, 3, 15),
                time="25:00",
            ))
        assert "time" in exc_info.value.errors

    def test_complete_records_products(self, synchronizer, repository, visit_record):
        synchronizer.complete_visit(visit_record.id, [ProductUsage("p1", 2)])

        stored = repository.get_visit(USER_ID, visit_record.id)
        assert stored.status == VisitStatus.COMPLETED
        assert stored.completed_at is not None
        assert stored.products_quantity == 2

    def test_skip_clears_products(self, synchronizer, repository, visit_record):
        synchronizer.update_visit_products(visit_record.id, [ProductUsage("p1")])

        synchronizer.skip_visit(visit_record.id)

        stored = repository.get_visit(USER_ID, visit_record.id)
        assert stored.status == VisitStatus.SKIPPED
        assert stored.products_used == []

    def test_finished_visit_cannot_be_skipped(self, synchronizer, visit_record):
        synchronizer.complete_visit(visit_record.id)

        with pytest.raises(InvalidTransitionError):
            synchronizer.skip_visit(visit_record.id)

    def test_visits_of_other_users_are_invisible(self, repository, visit_record):
        other = RecordSynchronizer(repository, "user-2")

        with pytest.raises(RecordNotFoundError):
            other.complete_visit(visit_record.id)

    def test_list_filters_by_date_and_status(self, synchronizer, repository, client_record, pool_record):
        for day, time in ((15, "14:00"), (15, "08:00"), (16, "09:00")):
            synchronizer.save_visit(Visit(
                client_id=client_record.id,
                pool_id=pool_record.id,
                scheduled_date=date(2024, 3, day),
                time=time,
            ))

        on_day = repository.list_visits(USER_ID, on_date=date(2024, 3, 15))

        assert [v.time for v in on_day] == ["08:00", "14:00"]
        assert repository.list_visits(USER_ID, status=VisitStatus.COMPLETED) == []


class TestVisitReadings:

    def test_readings_land_on_the_pool(self, synchronizer, repository, visit_record):
        readings = PoolReadings(ph=7.4, chlorine=2.0, water_quality=WaterQuality.CLOUDY)

        visit, pool = synchronizer.record_visit_readings(visit_record.id, readings)

        stored = repository.get_pool(USER_ID, visit.client_id, visit.pool_id)
        assert stored.ph == 7.4
        assert stored.chlorine == 2.0
        assert stored.water_quality == WaterQuality.CLOUDY
        assert stored.volume == 48000

    def test_products_are_replaced_when_given(self, synchronizer, repository, visit_record):
        synchronizer.record_visit_readings(
            visit_record.id,
            PoolReadings(ph=7.2),
            [ProductUsage("p1", 3)],
        )

        stored = repository.get_visit(USER_ID, visit_record.id)
        assert [(u.product_id, u.quantity) for u in stored.products_used] == [("p1", 3)]


class TestProducts:

    def test_create_update_delete(self, synchronizer, repository):
        product = synchronizer.save_product(Product(name="Clarifier", cost=25.0, stock=4))
        product.stock = 2
        synchronizer.save_product(product)

        assert repository.get_product(product.id).stock == 2

        synchronizer.delete_product(product.id)
        assert repository.list_products() == []

    def test_negative_stock_is_rejected(self, synchronizer):
        with pytest.raises(RecordValidationError):
            synchronizer.save_product(Product(name="Clarifier", cost=25.0, stock=-1))

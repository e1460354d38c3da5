"""Tests for StockLedger."""

import pytest

from storefront.domain.errors import InsufficientStock, ProductUnavailable, StockBelowReserved
from storefront.domain.states import ReservationState


class TestStockLedger:
    def test_ensure_counter_registers_once(self, db, ledger):
        ledger.ensure_counter(1, 5)
        ledger.ensure_counter(1, 99)
        db.commit()

        counter = ledger.counters(1)
        assert counter.total_stock == 5
        assert ledger.available(1) == 5

    def test_unknown_product_has_no_availability(self, ledger):
        assert ledger.available(42) == 0

    def test_reserve_holds_stock(self, db, ledger, make_order):
        order = make_order()
        ledger.ensure_counter(1, 5)
        reservation = ledger.reserve(order.id, 1, 3)
        db.commit()

        counter = ledger.counters(1)
        assert reservation.state == ReservationState.HELD.value
        assert counter.held == 3
        assert counter.committed == 0
        assert ledger.available(1) == 2

    def test_reserve_refuses_oversell(self, db, ledger, make_order):
        first, second = make_order(), make_order()
        ledger.ensure_counter(1, 2)
        ledger.reserve(first.id, 1, 2)
        db.commit()

        with pytest.raises(InsufficientStock) as exc:
            ledger.reserve(second.id, 1, 1)

        assert exc.value.requested == 1
        assert exc.value.available == 0
        assert ledger.counters(1).held == 2

    def test_reserve_without_counter_is_unavailable(self, ledger, make_order):
        with pytest.raises(ProductUnavailable):
            ledger.reserve(make_order().id, 7, 1)

    def test_commit_moves_held_to_committed_once(self, db, ledger, make_order):
        order = make_order()
        ledger.ensure_counter(1, 5)
        ledger.reserve(order.id, 1, 2)

        assert ledger.commit_order(order.id) == 2
        assert ledger.commit_order(order.id) == 0
        db.commit()

        counter = ledger.counters(1)
        assert (counter.held, counter.committed) == (0, 2)
        assert [r.state for r in ledger.reservations(order.id)] == ["committed"]

    def test_release_held_restores_availability(self, db, ledger, make_order):
        order = make_order()
        ledger.ensure_counter(1, 5)
        ledger.reserve(order.id, 1, 4)

        assert ledger.release_order(order.id) == 4
        assert ledger.release_order(order.id) == 0
        db.commit()

        assert ledger.available(1) == 5
        assert [r.state for r in ledger.reservations(order.id)] == ["released"]

    def test_release_committed_restores_availability(self, db, ledger, make_order):
        order = make_order()
        ledger.ensure_counter(1, 5)
        ledger.reserve(order.id, 1, 3)
        ledger.commit_order(order.id)

        ledger.release_order(order.id)
        db.commit()

        counter = ledger.counters(1)
        assert (counter.held, counter.committed) == (0, 0)
        assert ledger.available(1) == 5

    def test_reservations_are_kept_after_release(self, db, ledger, make_order):
        order = make_order()
        ledger.ensure_counter(1, 5)
        ledger.reserve(order.id, 1, 1)
        ledger.release_order(order.id)
        db.commit()

        assert len(ledger.reservations(order.id)) == 1

    def test_restock_cannot_go_below_reserved(self, db, ledger, make_order):
        order = make_order()
        ledger.ensure_counter(1, 5)
        ledger.reserve(order.id, 1, 4)
        db.commit()

        with pytest.raises(StockBelowReserved):
            ledger.restock(1, 3)

        ledger.restock(1, 10)
        db.commit()
        assert ledger.available(1) == 6

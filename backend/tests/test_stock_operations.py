from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

import crud.inventory as crud_inventory
import crud.stock_operations as crud_stock
from exceptions import InsufficientStock, InvalidTransaction, LedgerEntryNotFound, MaterialNotFound, PersistenceFailure
from models.inventory_history import InventoryHistory, TransactionType
from models.materials import Material


def _stock(db, material_id):
    db.expire_all()
    return db.query(Material).filter(Material.id == material_id).one().stock_qty


class TestIssueAndReversal:

    def test_issue_books_negative_entry(self, db, material, project, user):
        updated, entry = crud_stock.issue_material(
            db,
            material_id=material.id,
            project_id=project.id,
            quantity=Decimal("30"),
            performed_by_user_id=user.id,
            transaction_id=501,
            purpose="Slab casting, level 3",
        )

        assert updated.stock_qty == Decimal("70")
        assert entry.quantity_change == Decimal("-30")
        assert entry.reference_number == "ISSUE-501"
        assert entry.description == "Material issued: Slab casting, level 3"

    def test_issue_more_than_available(self, db, material, project, user):
        with pytest.raises(InsufficientStock):
            crud_stock.issue_material(
                db, material_id=material.id, project_id=project.id, quantity=101, performed_by_user_id=user.id
            )
        assert _stock(db, material.id) == Decimal("100")

    @pytest.mark.parametrize("quantity", [0, -5])
    def test_issue_requires_positive_quantity(self, db, material, project, user, quantity):
        with pytest.raises(InvalidTransaction):
            crud_stock.issue_material(
                db, material_id=material.id, project_id=project.id, quantity=quantity, performed_by_user_id=user.id
            )

    def test_reverse_restores_stock_and_keeps_original(self, db, material, project, user):
        _, issued = crud_stock.issue_material(
            db, material_id=material.id, project_id=project.id, quantity=25, performed_by_user_id=user.id
        )

        updated, reversal = crud_stock.reverse_issue(
            db, history_id=issued.id, performed_by_user_id=user.id, reason="Wrong site"
        )

        assert updated.stock_qty == Decimal("100")
        assert reversal.transaction_type == TransactionType.ISSUE
        assert reversal.quantity_change == Decimal("25")
        assert reversal.reference_number == f"ISSUE-CANCEL-{issued.id}"
        assert "Wrong site" in reversal.description
        original = db.query(InventoryHistory).filter(InventoryHistory.id == issued.id).one()
        assert original.quantity_change == Decimal("-25")

    def test_second_reversal_is_refused(self, db, material, project, user):
        _, issued = crud_stock.issue_material(
            db, material_id=material.id, project_id=project.id, quantity=25, performed_by_user_id=user.id
        )
        crud_stock.reverse_issue(db, history_id=issued.id, performed_by_user_id=user.id)

        with pytest.raises(InvalidTransaction):
            crud_stock.reverse_issue(db, history_id=issued.id, performed_by_user_id=user.id)
        assert _stock(db, material.id) == Decimal("100")

    def test_only_issues_can_be_reversed(self, db, material, user):
        _, purchase = crud_stock.restock_material(
            db, material_id=material.id, quantity=10, performed_by_user_id=user.id
        )
        with pytest.raises(InvalidTransaction):
            crud_stock.reverse_issue(db, history_id=purchase.id, performed_by_user_id=user.id)

    def test_restock_reusing_cancel_reference_does_not_block_reversal(self, db, material, project, user):
        _, issued = crud_stock.issue_material(
            db, material_id=material.id, project_id=project.id, quantity=25, performed_by_user_id=user.id
        )
        crud_stock.restock_material(
            db,
            material_id=material.id,
            quantity=5,
            performed_by_user_id=user.id,
            reference_number=f"ISSUE-CANCEL-{issued.id}",
        )

        updated, reversal = crud_stock.reverse_issue(db, history_id=issued.id, performed_by_user_id=user.id)

        assert reversal.quantity_change == Decimal("25")
        assert updated.stock_qty == Decimal("105")

    def test_reverse_unknown_entry(self, db, user):
        with pytest.raises(LedgerEntryNotFound):
            crud_stock.reverse_issue(db, history_id=4242, performed_by_user_id=user.id)


class TestReturns:

    def test_multi_line_return(self, db, make_material, project, user):
        cement = make_material(stock="10")
        sand = make_material(stock="0")

        entries = crud_stock.return_materials(
            db,
            project_id=project.id,
            lines=[{"material_id": sand.id, "quantity": "2.5"}, {"material_id": cement.id, "quantity": 4}],
            performed_by_user_id=user.id,
            transaction_id=77,
        )

        assert [e.material_id for e in entries] == [cement.id, sand.id]
        assert all(e.transaction_type == TransactionType.RETURN for e in entries)
        assert all(e.reference_number == "RETURN-77" for e in entries)
        assert all(e.location == "Store" for e in entries)
        assert _stock(db, cement.id) == Decimal("14")
        assert _stock(db, sand.id) == Decimal("2.5")

    def test_unknown_line_rejects_whole_return(self, db, material, project, user):
        with pytest.raises(MaterialNotFound):
            crud_stock.return_materials(
                db,
                project_id=project.id,
                lines=[{"material_id": material.id, "quantity": 5}, {"material_id": 9999, "quantity": 1}],
                performed_by_user_id=user.id,
            )
        assert _stock(db, material.id) == Decimal("100")
        assert db.query(InventoryHistory).count() == 0

    def test_empty_return_is_rejected(self, db, project, user):
        with pytest.raises(InvalidTransaction):
            crud_stock.return_materials(db, project_id=project.id, lines=[], performed_by_user_id=user.id)


class TestTransfers:

    def test_transfer_between_site_materials(self, db, make_material, make_project, user):
        site_a = make_project()
        site_b = make_project()
        source = make_material(stock="40", project_id=site_a.id)
        destination = make_material(stock="5", project_id=site_b.id)

        src, dst, (debit, credit) = crud_stock.transfer_material(
            db,
            material_id=source.id,
            from_project_id=site_a.id,
            to_project_id=site_b.id,
            quantity=15,
            performed_by_user_id=user.id,
            to_material_id=destination.id,
        )

        assert src.stock_qty == Decimal("25")
        assert dst.stock_qty == Decimal("20")
        assert debit.quantity_change == Decimal("-15")
        assert credit.quantity_change == Decimal("15")
        assert debit.reference_number == credit.reference_number
        assert debit.transaction_type == credit.transaction_type == TransactionType.TRANSFER

    def test_same_material_between_projects_nets_to_zero(self, db, material, make_project, user):
        site_a = make_project()
        site_b = make_project()

        src, dst, entries = crud_stock.transfer_material(
            db,
            material_id=material.id,
            from_project_id=site_a.id,
            to_project_id=site_b.id,
            quantity=10,
            performed_by_user_id=user.id,
        )

        assert src is dst
        assert _stock(db, material.id) == Decimal("100")
        assert [e.project_id for e in entries] == [site_a.id, site_b.id]

    def test_failing_credit_leaves_debit_unapplied(self, db, make_material, make_project, user, monkeypatch):
        site_a = make_project()
        site_b = make_project()
        source = make_material(stock="40")
        destination = make_material(stock="5")
        real_write = crud_inventory.create_history_entry
        calls = {"n": 0}

        def fail_second_write(session, **fields):
            calls["n"] += 1
            if calls["n"] == 2:
                raise SQLAlchemyError("connection lost")
            return real_write(session, **fields)

        monkeypatch.setattr(crud_inventory, "create_history_entry", fail_second_write)

        with pytest.raises(PersistenceFailure):
            crud_stock.transfer_material(
                db,
                material_id=source.id,
                from_project_id=site_a.id,
                to_project_id=site_b.id,
                quantity=15,
                performed_by_user_id=user.id,
                to_material_id=destination.id,
            )

        assert _stock(db, source.id) == Decimal("40")
        assert _stock(db, destination.id) == Decimal("5")
        assert db.query(InventoryHistory).count() == 0

    def test_insufficient_source_stock(self, db, make_material, make_project, user):
        site_a = make_project()
        site_b = make_project()
        source = make_material(stock="3")
        destination = make_material(stock="0")

        with pytest.raises(InsufficientStock):
            crud_stock.transfer_material(
                db,
                material_id=source.id,
                from_project_id=site_a.id,
                to_project_id=site_b.id,
                quantity=4,
                performed_by_user_id=user.id,
                to_material_id=destination.id,
            )
        assert _stock(db, destination.id) == Decimal("0")

    def test_transfer_to_itself_is_rejected(self, db, material, project, user):
        with pytest.raises(InvalidTransaction):
            crud_stock.transfer_material(
                db,
                material_id=material.id,
                from_project_id=project.id,
                to_project_id=project.id,
                quantity=1,
                performed_by_user_id=user.id,
            )


class TestSettlement:

    def test_count_below_recorded_books_negative_adjustment(self, db, material, user):
        updated, entry = crud_stock.settle_stock(
            db, material_id=material.id, counted_quantity="92.5", performed_by_user_id=user.id, remarks="Monthly count"
        )

        assert updated.stock_qty == Decimal("92.5")
        assert entry.transaction_type == TransactionType.ADJUSTMENT
        assert entry.quantity_change == Decimal("-7.5")
        assert entry.reference_number.startswith("SETTLEMENT-")
        assert "Monthly count" in entry.description

    def test_count_above_recorded_books_positive_adjustment(self, db, material, user):
        _, entry = crud_stock.settle_stock(db, material_id=material.id, counted_quantity=130, performed_by_user_id=user.id)
        assert entry.quantity_change == Decimal("30")

    def test_matching_count_writes_nothing(self, db, material, user):
        updated, entry = crud_stock.settle_stock(db, material_id=material.id, counted_quantity=100, performed_by_user_id=user.id)

        assert entry is None
        assert updated.stock_qty == Decimal("100")
        assert db.query(InventoryHistory).count() == 0

    def test_negative_count_is_rejected(self, db, material, user):
        with pytest.raises(InvalidTransaction):
            crud_stock.settle_stock(db, material_id=material.id, counted_quantity=-1, performed_by_user_id=user.id)


class TestRestock:

    def test_restock_updates_cost_and_supplier(self, db, material, user):
        updated, entry = crud_stock.restock_material(
            db,
            material_id=material.id,
            quantity=50,
            performed_by_user_id=user.id,
            cost_per_unit="365.50",
            supplier="UltraTech Dealers",
            reference_number="GRN-2211",
        )

        assert updated.stock_qty == Decimal("150")
        assert entry.transaction_type == TransactionType.PURCHASE
        assert entry.reference_number == "GRN-2211"
        assert entry.location == "Main Store"
        db.expire_all()
        reloaded = db.query(Material).filter(Material.id == material.id).one()
        assert reloaded.cost_per_unit == Decimal("365.50")
        assert reloaded.supplier == "UltraTech Dealers"

    def test_cost_finer_than_paise_is_rejected(self, db, material, user):
        with pytest.raises(InvalidTransaction):
            crud_stock.restock_material(
                db, material_id=material.id, quantity=5, performed_by_user_id=user.id, cost_per_unit="10.005"
            )
        assert _stock(db, material.id) == Decimal("100")

    def test_bulk_restock_reports_failed_lines(self, db, make_material, user):
        cement = make_material(stock="10")
        sand = make_material(stock="0")

        result = crud_stock.bulk_restock(
            db,
            restocks=[
                {"material_id": cement.id, "quantity": 20},
                {"material_id": 9999, "quantity": 5},
                {"material_id": sand.id, "quantity": "7.5", "cost_per_unit": 40},
            ],
            performed_by_user_id=user.id,
            reference_number="BULK-1",
        )

        assert result["message"] == "Bulk restock completed. 2 materials restocked successfully."
        assert [r["material_id"] for r in result["results"]] == [cement.id, sand.id]
        assert result["results"][1]["new_stock"] == Decimal("7.5")
        assert result["errors"] == [{"material_id": 9999, "error": "Material with ID 9999 not found"}]
        assert _stock(db, cement.id) == Decimal("30")
        assert _stock(db, sand.id) == Decimal("7.5")

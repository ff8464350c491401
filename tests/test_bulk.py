import uuid
from datetime import date

import pytest

from fleetmarket.database import SessionLocal, engine
from fleetmarket.models import Base, Dealership
from fleetmarket.utils.bulk import BulkItemError, run_bulk, unique_ids


Base.metadata.create_all(bind=engine)


def _dealership(db, name: str) -> Dealership:
    d = Dealership(name=name, location="Hama", phone="0933000111", subscription_end_date=date(2030, 1, 1))
    db.add(d)
    db.flush()
    return d


def test_unique_ids_keeps_first_occurrence_order():
    assert unique_ids([3, 1, 3, 2, 1]) == [3, 1, 2]


def test_empty_selection_is_rejected():
    db = SessionLocal()
    try:
        with pytest.raises(ValueError, match="No records selected"):
            run_bulk(db, [], lambda s, i: None)
    finally:
        db.close()


def test_failed_item_rolls_back_alone():
    tag = uuid.uuid4().hex[:6]
    db = SessionLocal()
    try:
        ids = [_dealership(db, f"bulk-{tag}-{i}").id for i in range(3)]
        db.commit()
        missing = uuid.uuid4()

        def _rename(session, dealership_id):
            d = session.get(Dealership, dealership_id)
            if d is None:
                raise LookupError("Dealership not found")
            d.name = d.name + "-renamed"
            session.flush()
            if dealership_id == ids[1]:
                raise BulkItemError("refused")

        result = run_bulk(db, [ids[0], ids[1], missing, ids[2], ids[0]], _rename)
        db.commit()
        assert result.requested == 4
        assert result.succeeded == [str(ids[0]), str(ids[2])]
        assert result.failed == {str(ids[1]): "refused", str(missing): "Dealership not found"}
        assert not result.ok
        assert result.as_dict()["updated"] == 2
    finally:
        db.close()

    db = SessionLocal()
    try:
        names = {d.id: d.name for d in db.query(Dealership).filter(Dealership.id.in_(ids)).all()}
        assert names[ids[0]].endswith("-renamed")
        assert not names[ids[1]].endswith("-renamed")
        assert names[ids[2]].endswith("-renamed")
    finally:
        db.close()

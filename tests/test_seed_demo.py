from fleetmarket.database import SessionLocal, engine
from fleetmarket.models import Base, Dealership
from fleetmarket.seed_demo import DEALERSHIPS, seed


Base.metadata.create_all(bind=engine)


def test_seed_is_idempotent():
    db = SessionLocal()
    try:
        first = seed(db)
        db.commit()
        second = seed(db)
        db.commit()
        assert second == {"cars": 0, "rentals": 0, "plates": 0, "autoclips": 0}
        names = [name for name, *_ in DEALERSHIPS]
        assert db.query(Dealership).filter(Dealership.name.in_(names)).count() == len(names)
        assert first == {"cars": 9, "rentals": 3, "plates": 3, "autoclips": 3}
    finally:
        db.close()

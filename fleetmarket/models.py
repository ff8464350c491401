# fleetmarket
import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, Float, Date, DateTime, Boolean, ForeignKey, Index, JSON, Text, UniqueConstraint, Uuid
)
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()


def default_uuid():
    return uuid.uuid4()


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=default_uuid)
    email = Column(String(255), nullable=True, unique=True, index=True)
    name = Column(String(128), nullable=True)
    phone_number = Column(String(32), nullable=True)
    password_hash = Column(String(255), nullable=True)
    role = Column(String(16), nullable=False, default="user")  # user|dealer|admin
    banned_until = Column(DateTime, nullable=True)
    locked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    dealership = relationship("Dealership", back_populates="owner", uselist=False)

    @property
    def is_banned(self) -> bool:
        return self.banned_until is not None and self.banned_until > datetime.utcnow()


class Dealership(Base):
    __tablename__ = "dealerships"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=default_uuid)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, unique=True)
    name = Column(String(128), nullable=False)
    location = Column(String(128), nullable=False)
    phone = Column(String(32), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    logo = Column(String(1024), nullable=True)
    subscription_end_date = Column(Date, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    owner = relationship("User", back_populates="dealership")
    cars = relationship("Car", back_populates="dealership")


class Car(Base):
    __tablename__ = "cars"
    __table_args__ = (
        Index("ix_cars_dealership_status", "dealership_id", "status"),
        Index("ix_cars_listed_at", "listed_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=default_uuid)
    dealership_id = Column(Uuid(as_uuid=True), ForeignKey("dealerships.id"), nullable=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    make = Column(String(64), nullable=False)
    model = Column(String(64), nullable=False)
    trim = Column(String(64), nullable=True)
    year = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    color = Column(String(32), nullable=True)
    category = Column(String(32), nullable=True)
    fuel_type = Column(String(32), nullable=True)
    transmission = Column(String(32), nullable=True)
    drivetrain = Column(String(16), nullable=True)
    condition = Column(String(16), nullable=True)  # New|Used
    mileage = Column(Float, nullable=True)
    features = Column(JSON, nullable=False, default=list)
    images = Column(JSON, nullable=False, default=list)
    description = Column(Text, nullable=True)
    source = Column(String(32), nullable=True)
    bought_price = Column(Float, nullable=True)
    date_bought = Column(DateTime, nullable=True)
    seller_name = Column(String(128), nullable=True)
    status = Column(String(16), nullable=False, default="available")  # available|pending|sold|deleted
    is_boosted = Column(Boolean, nullable=False, default=False)
    views = Column(Integer, nullable=False, default=0)
    likes = Column(Integer, nullable=False, default=0)
    sold_price = Column(Float, nullable=True)
    date_sold = Column(DateTime, nullable=True)
    buyer_name = Column(String(128), nullable=True)
    listed_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    dealership = relationship("Dealership", back_populates="cars")


class RentalCar(Base):
    __tablename__ = "cars_rent"
    __table_args__ = (
        Index("ix_cars_rent_dealership_status", "dealership_id", "status"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=default_uuid)
    dealership_id = Column(Uuid(as_uuid=True), ForeignKey("dealerships.id"), nullable=False)
    make = Column(String(64), nullable=False)
    model = Column(String(64), nullable=False)
    trim = Column(String(64), nullable=True)
    year = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    color = Column(String(32), nullable=True)
    category = Column(String(32), nullable=True)
    fuel_type = Column(String(32), nullable=True)
    transmission = Column(String(32), nullable=True)
    drivetrain = Column(String(16), nullable=True)
    features = Column(JSON, nullable=False, default=list)
    images = Column(JSON, nullable=False, default=list)
    description = Column(Text, nullable=True)
    rental_period = Column(String(16), nullable=False, default="daily")  # daily|weekly|monthly
    status = Column(String(16), nullable=False, default="available")
    is_boosted = Column(Boolean, nullable=False, default=False)
    views = Column(Integer, nullable=False, default=0)
    likes = Column(Integer, nullable=False, default=0)
    listed_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    dealership = relationship("Dealership")


class NumberPlate(Base):
    __tablename__ = "number_plates"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=default_uuid)
    dealership_id = Column(Uuid(as_uuid=True), ForeignKey("dealerships.id"), nullable=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    letter = Column(String(1), nullable=False)
    digits = Column(String(16), nullable=False)
    price = Column(Float, nullable=False)
    status = Column(String(16), nullable=False, default="available")  # available|pending|sold|deleted
    views = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    dealership = relationship("Dealership")


class AutoClip(Base):
    __tablename__ = "auto_clips"
    __table_args__ = (
        Index("ix_auto_clips_status", "status"),
        Index("ix_auto_clips_dealership", "dealership_id"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=default_uuid)
    dealership_id = Column(Uuid(as_uuid=True), ForeignKey("dealerships.id"), nullable=False)
    car_id = Column(Uuid(as_uuid=True), ForeignKey("cars.id"), nullable=True)
    title = Column(String(128), nullable=False)
    description = Column(String(2048), nullable=True)
    video_url = Column(String(1024), nullable=False)
    thumbnail_url = Column(String(1024), nullable=True)
    status = Column(String(16), nullable=False, default="under_review")  # draft|under_review|published|rejected|archived
    views = Column(Integer, nullable=False, default=0)
    likes = Column(Integer, nullable=False, default=0)
    submitted_at = Column(DateTime, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by = Column(String(64), nullable=True)
    rejection_reason = Column(String(1024), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    dealership = relationship("Dealership")
    car = relationship("Car")


class Favorite(Base):
    __tablename__ = "favorites"
    __table_args__ = (
        UniqueConstraint("user_id", "car_id", name="uq_favorite_user_car"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=default_uuid)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    car_id = Column(Uuid(as_uuid=True), ForeignKey("cars.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

"""Database models."""
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, JSON
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Customer(Base):
    """Bank customer model."""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    record_ref = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True)
    allowed_transfer_refs = Column(JSON, nullable=True)  # List of account record refs

    # Relationships
    accounts = relationship("Account", back_populates="owner")


class Account(Base):
    """Bank account model."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    record_ref = Column(String, unique=True, index=True, nullable=False)
    account_id = Column(String, unique=True, index=True, nullable=False)  # NNN-NNNNNNN-N
    pin = Column(String, nullable=False)
    balance = Column(Numeric(12, 2), nullable=False, default=0)
    owner_ref = Column(String, ForeignKey("customers.record_ref"), nullable=False)

    # Relationships
    owner = relationship("Customer", back_populates="accounts")

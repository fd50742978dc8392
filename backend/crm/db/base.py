"""Declarative base shared by all models."""
import uuid

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def new_id() -> str:
    """String primary key; ids travel as strings on the wire."""
    return uuid.uuid4().hex

"""Declarative base shared by all streamgate models."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()

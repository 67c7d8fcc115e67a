"""Durable store for assignment history, notifications and the installation directory."""

from .database import Database
from .directory import RepositoryDirectory

__all__ = ["Database", "RepositoryDirectory"]

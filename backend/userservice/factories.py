"""Factories — build controllers with their service and repository wired to a Database.

Invariants:
    - Every controller built here shares the Database passed in (one connection per server)
"""

from userservice.api.controllers.user_controller import UserController
from userservice.infrastructure.database import Database
from userservice.infrastructure.user_repository import SqlUserRepository
from userservice.services.user_service import UserService


def build_user_service(database: Database) -> UserService:
    return UserService(SqlUserRepository(database))


def build_user_controller(database: Database) -> UserController:
    return UserController(build_user_service(database))

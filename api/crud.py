"""
api/crud.py -- Generic CRUD controller shared by the users, posts, and comments routers.

One CrudController wraps one core.repository.Repository and turns its
"None means missing" / "SQLAlchemy raised" results into the application
error taxonomy:

  missing id on get/update/delete  -> NotFound (404)
  IntegrityError (UNIQUE violated) -> Conflict (409)
  any other SQLAlchemyError        -> InternalError (500), traceback logged
  unknown filter/update column     -> ValidationError (400)

Controllers are built once in api.main.attach_services() and stored on
app.state, e.g. request.app.state.posts.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Generic, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.errors import Conflict, InternalError, NotFound, ValidationError
from core.repository import Repository

logger = logging.getLogger("postboard.crud")

T = TypeVar("T")


class CrudController(Generic[T]):
    """Entity-agnostic list / get / create / update / delete.

    deleter overrides the repository's plain delete for entities whose
    removal must cascade (posts take their comments with them). It receives
    the id and returns the deleted entity or None.
    """

    def __init__(
        self,
        repository: Repository[T],
        entity_name: str,
        deleter: Callable[[int], T | None] | None = None,
    ) -> None:
        self.repository = repository
        self.entity_name = entity_name
        self._deleter = deleter or repository.delete

    def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        except IntegrityError as exc:
            raise Conflict(f"A {self.entity_name} with those values already exists.") from exc
        except SQLAlchemyError as exc:
            logger.exception("Storage failure on %s", self.entity_name)
            raise InternalError(f"Could not access {self.entity_name} storage.") from exc

    def _not_found(self) -> NotFound:
        return NotFound(f"{self.entity_name.capitalize()} not found.")

    def list(self, newest_first: bool = False, **filters: Any) -> list[T]:
        return self._call(self.repository.list, newest_first=newest_first, **filters)

    def get(self, entity_id: int) -> T:
        entity = self._call(self.repository.get_by_id, entity_id)
        if entity is None:
            raise self._not_found()
        return entity

    def create(self, **values: Any) -> T:
        return self._call(self.repository.create, **values)

    def update(self, entity_id: int, **values: Any) -> T:
        entity = self._call(self.repository.update, entity_id, **values)
        if entity is None:
            raise self._not_found()
        return entity

    def delete(self, entity_id: int) -> T:
        entity = self._call(self._deleter, entity_id)
        if entity is None:
            raise self._not_found()
        return entity

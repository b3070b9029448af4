"""User directory: maps provider identities to local users with a role."""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (Column, DateTime, MetaData, String, Table, insert,
                        select)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .domain import User
from .exceptions import IdentityResolutionError

logger = logging.getLogger(__name__)

metadata = MetaData()

users_table = Table(
    'users', metadata,
    Column('id', String(64), primary_key=True),
    Column('provider_id', String(255), nullable=False, unique=True),
    Column('role', String(32), nullable=False),
    Column('created_at', DateTime(timezone=True), nullable=False),
)


class UserDirectory(ABC):
    """Authoritative source of local users and their roles."""

    @abstractmethod
    def get_or_create_user(self, provider_id: str) -> User:
        """Get the user linked to ``provider_id``, creating one if needed.

        Raises
        ------
        :class:`.IdentityResolutionError`

        """

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        """Get a user by local ID, or ``None`` if there is no such user.

        Raises
        ------
        :class:`.IdentityResolutionError`

        """


class SQLUserDirectory(UserDirectory):
    """User directory backed by a single SQL table.

    New users get ``default_role``. Roles are changed out of band, directly in
    the table; the gates pick up the change on the next request.
    """

    def __init__(self, engine: Engine, default_role: str = 'user') -> None:
        self.engine = engine
        self.default_role = default_role

    def create_tables(self) -> None:
        """Create the users table if it is missing."""
        metadata.create_all(bind=self.engine)

    def get_user(self, user_id: str) -> Optional[User]:
        query = select(users_table.c.id, users_table.c.role) \
            .where(users_table.c.id == user_id)
        try:
            with self.engine.connect() as conn:
                row = conn.execute(query).first()
        except SQLAlchemyError as e:
            raise IdentityResolutionError(f'could not get user {user_id}: {e}') from e
        if row is None:
            logger.debug('no user found for id %s', user_id)
            return None
        return User(id=row.id, role=row.role)

    def get_or_create_user(self, provider_id: str) -> User:
        if not provider_id:
            raise IdentityResolutionError('could not upsert user: no provider id')
        try:
            user = self._get_by_provider_id(provider_id)
            if user is not None:
                return user
            try:
                return self._create(provider_id)
            except IntegrityError:
                # Another request created it first.
                logger.debug('user for %s created concurrently', provider_id)
                user = self._get_by_provider_id(provider_id)
                if user is None:
                    raise
                return user
        except SQLAlchemyError as e:
            raise IdentityResolutionError(f'could not upsert user: {e}') from e

    def set_role(self, user_id: str, role: str) -> None:
        """Change the role of an existing user."""
        try:
            with self.engine.begin() as conn:
                conn.execute(users_table.update()
                             .where(users_table.c.id == user_id)
                             .values(role=role))
        except SQLAlchemyError as e:
            raise IdentityResolutionError(f'could not update user {user_id}: {e}') from e

    def _get_by_provider_id(self, provider_id: str) -> Optional[User]:
        query = select(users_table.c.id, users_table.c.role) \
            .where(users_table.c.provider_id == provider_id)
        with self.engine.connect() as conn:
            row = conn.execute(query).first()
        return None if row is None else User(id=row.id, role=row.role)

    def _create(self, provider_id: str) -> User:
        user = User(id=uuid.uuid4().hex, role=self.default_role)
        with self.engine.begin() as conn:
            conn.execute(insert(users_table).values(
                id=user.id, provider_id=provider_id, role=user.role,
                created_at=datetime.now(tz=timezone.utc)))
        logger.info('created user %s', user.id)
        return user

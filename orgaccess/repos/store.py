"""Per-request bundle of repositories plus a transaction boundary.

Services receive a Store instead of individual repos so that a multi-step
operation (allocate a seat and create the grant, or walk every member of a
revoked code) can be wrapped in ``async with store.transaction():`` and
either lands completely or not at all.

  PgStore:        one AsyncSession.  transaction() opens a database
                  transaction, or joins the one already open on the
                  session (the request-scoped session from get_store
                  commits at the end of the request).

  InMemoryStore:  dict-backed repos for local dev and tests.
                  transaction() snapshots every table on entry and puts
                  the snapshot back if the block raises.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from orgaccess.repos.license_repo import (
    InMemoryLicenseTypeRepo,
    InMemoryOrgLicenseRepo,
    InMemoryUserLicenseRepo,
    LicenseTypeRepo,
    OrgLicenseRepo,
    UserLicenseRepo,
)
from orgaccess.repos.org_code_repo import InMemoryOrgCodeRepo, OrgCodeRepo
from orgaccess.repos.org_membership_repo import (
    InMemoryOrgMembershipRepo,
    OrgMembershipRepo,
)
from orgaccess.repos.org_repo import InMemoryOrgRepo, OrgRepo
from orgaccess.repos.pg_license_repo import (
    PgLicenseTypeRepo,
    PgOrgLicenseRepo,
    PgUserLicenseRepo,
)
from orgaccess.repos.pg_org_code_repo import PgOrgCodeRepo
from orgaccess.repos.pg_org_membership_repo import PgOrgMembershipRepo
from orgaccess.repos.pg_org_repo import PgOrgRepo
from orgaccess.repos.pg_user_repo import PgUserRepo
from orgaccess.repos.user_repo import InMemoryUserRepo, UserRepo


class Store(Protocol):
    orgs: OrgRepo
    members: OrgMembershipRepo
    codes: OrgCodeRepo
    license_types: LicenseTypeRepo
    pools: OrgLicenseRepo
    user_licenses: UserLicenseRepo
    users: UserRepo

    def transaction(self) -> AbstractAsyncContextManager[None]: ...


class InMemoryStore:
    def __init__(self) -> None:
        self.orgs = InMemoryOrgRepo()
        self.members = InMemoryOrgMembershipRepo()
        self.codes = InMemoryOrgCodeRepo()
        self.license_types = InMemoryLicenseTypeRepo()
        self.pools = InMemoryOrgLicenseRepo()
        self.user_licenses = InMemoryUserLicenseRepo()
        self.users = InMemoryUserRepo()
        self._depth = 0

    def _repos(self) -> tuple:
        return (
            self.orgs,
            self.members,
            self.codes,
            self.license_types,
            self.pools,
            self.user_licenses,
            self.users,
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._depth:
            # Nested: the outermost block owns rollback.
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        snapshots = [repo.snapshot() for repo in self._repos()]
        self._depth = 1
        try:
            yield
        except BaseException:
            for repo, state in zip(self._repos(), snapshots):
                repo.restore(state)
            raise
        finally:
            self._depth = 0

    def clear(self) -> None:
        self.__init__()


class PgStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.orgs = PgOrgRepo(session)
        self.members = PgOrgMembershipRepo(session)
        self.codes = PgOrgCodeRepo(session)
        self.license_types = PgLicenseTypeRepo(session)
        self.pools = PgOrgLicenseRepo(session)
        self.user_licenses = PgUserLicenseRepo(session)
        self.users = PgUserRepo(session)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._session.in_transaction():
            # Joined: whoever opened the outer transaction commits it.
            yield
            return
        async with self._session.begin():
            yield

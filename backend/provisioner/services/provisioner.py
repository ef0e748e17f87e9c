"""
Provisioning Service

Idempotent bring-up of the application database. One run executes, in order:
1. ensure_principal   - createUser on admin, readWrite scoped to the target db
2. (explicit target database selection through the session)
3. ensure_collections - create each declared collection if absent
4. ensure_indexes     - create each declared index if absent
5. seed_roles         - write the seed role documents per the seed policy

"Already exists" outcomes are recorded as skipped. Any other failure is
classified into the ProvisionError taxonomy, logged once and re-raised; the
remaining steps do not run and nothing already done is rolled back.
"""

import logging
from datetime import UTC, datetime

from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from provisioner.config import SEED_POLICIES
from provisioner.core.database import MongoSession
from provisioner.errors import (
    DUPLICATE_KEY,
    USER_ALREADY_EXISTS,
    ProvisionError,
    ValidationError,
    classify_error,
    is_already_exists,
)
from provisioner.models.report import Action, ProvisionReport, Step
from provisioner.models.seed import ROLES_COLLECTION, CollectionSpec, RoleSeed, SeedSpec
from provisioner.utils.logger import add_log_context


logger = logging.getLogger(__name__)


class Provisioner:
    """
    Applies a SeedSpec to the database reachable through a MongoSession.

    Attributes:
        session: Connected session; target database is always passed by name
        spec: Declarative description of what must exist
        seed_policy: "upsert" (reconcile by code) or "skip" (insert if absent)
        skip_principal: Leave principal management to someone else
        skip_seed: Do not write seed role documents

    Example usage:
        ```python
        with MongoSession(settings).connect() as session:
            report = Provisioner(session, gin_admin_seed_spec(settings)).run()
            print(report.summary())
        ```
    """

    def __init__(
        self,
        session: MongoSession,
        spec: SeedSpec,
        seed_policy: str = "upsert",
        skip_principal: bool = False,
        skip_seed: bool = False,
    ) -> None:
        if seed_policy not in SEED_POLICIES:
            raise ValidationError(
                f"Invalid seed policy '{seed_policy}'. Must be one of: {', '.join(SEED_POLICIES)}"
            )
        self.session = session
        self.spec = spec
        self.seed_policy = seed_policy
        self.skip_principal = skip_principal
        self.skip_seed = skip_seed
        self._log = add_log_context(logger, database=spec.database)

    def run(self) -> ProvisionReport:
        """
        Execute all steps in order.

        Returns:
            ProvisionReport: Per-object outcomes of the run.

        Raises:
            ProvisionError: The first fatal failure, as one of its subclasses.
        """
        report = ProvisionReport(database=self.spec.database, seed_policy=self.seed_policy)
        self._log.info(f"Provisioning database '{self.spec.database}'")

        if self.skip_principal:
            self._log.info("Skipping principal creation")
        else:
            self.ensure_principal(report)

        database = self.session.database(self.spec.database)

        self.ensure_collections(database, report)
        self.ensure_indexes(database, report)

        if self.skip_seed:
            self._log.info("Skipping seed role documents")
        else:
            self.seed_roles(database, report)

        report.finish()
        self._log.info(f"Provisioning finished: {report.summary()}")
        return report

    # =========================================================================
    # Step 1: principal
    # =========================================================================

    def ensure_principal(self, report: ProvisionReport) -> None:
        """Create the application principal on the admin database, or skip if present."""
        principal = self.spec.principal
        log = add_log_context(logger, database=self.spec.database, step=Step.PRINCIPAL.value)

        try:
            self.session.run_admin_command(
                "createUser",
                principal.name,
                pwd=principal.secret.get_secret_value(),
                roles=principal.role_grants(),
            )
        except PyMongoError as e:
            if self._user_exists(e):
                log.info(f"Principal '{principal.name}' already exists, skipping")
                report.record(Step.PRINCIPAL, principal.name, Action.SKIPPED)
                return
            raise self._fail(e, Step.PRINCIPAL) from e

        log.info(
            f"Created principal '{principal.name}' with role '{principal.role}' "
            f"on database '{principal.grant_db}'"
        )
        report.record(Step.PRINCIPAL, principal.name, Action.CREATED)

    @staticmethod
    def _user_exists(exc: PyMongoError) -> bool:
        # Servers before 4.0 report duplicate users with code 11000
        code = getattr(exc, "code", None)
        if code in (USER_ALREADY_EXISTS, DUPLICATE_KEY):
            return True
        return code is None and "already exists" in str(exc).lower()

    # =========================================================================
    # Step 3: collections
    # =========================================================================

    def ensure_collections(self, database: Database, report: ProvisionReport) -> None:
        """Create every declared collection that is not there yet."""
        log = add_log_context(logger, database=self.spec.database, step=Step.COLLECTIONS.value)

        try:
            existing = set(database.list_collection_names())
        except PyMongoError as e:
            raise self._fail(e, Step.COLLECTIONS) from e

        for collection in self.spec.collections:
            if collection.name in existing:
                log.debug(f"Collection '{collection.name}' already exists, skipping")
                report.record(Step.COLLECTIONS, collection.name, Action.SKIPPED)
                continue

            try:
                database.create_collection(collection.name)
            except PyMongoError as e:
                if is_already_exists(e):
                    log.debug(f"Collection '{collection.name}' created concurrently, skipping")
                    report.record(Step.COLLECTIONS, collection.name, Action.SKIPPED)
                    continue
                raise self._fail(e, Step.COLLECTIONS) from e

            log.info(f"Created collection: {collection.name}")
            report.record(Step.COLLECTIONS, collection.name, Action.CREATED)

    # =========================================================================
    # Step 4: indexes
    # =========================================================================

    def ensure_indexes(self, database: Database, report: ProvisionReport) -> None:
        """Create every declared index that is not there yet."""
        for collection in self.spec.collections:
            if collection.indexes:
                self._ensure_collection_indexes(database[collection.name], collection, report)

    def _ensure_collection_indexes(
        self, collection: Collection, spec: CollectionSpec, report: ProvisionReport
    ) -> None:
        log = add_log_context(
            logger, database=self.spec.database, step=Step.INDEXES.value, collection=spec.name
        )

        try:
            existing = collection.index_information()
        except PyMongoError as e:
            raise self._fail(e, Step.INDEXES) from e

        for index in spec.indexes:
            target = f"{spec.name}.{index.index_name}"
            info = existing.get(index.index_name)

            if info is not None:
                if not index.matches(info):
                    error = ValidationError(
                        f"Index '{target}' already exists with different options "
                        f"(existing key={info.get('key')}, unique={info.get('unique', False)}, "
                        f"sparse={info.get('sparse', False)}; declared {index.describe()})",
                        step=Step.INDEXES.value,
                    )
                    log.error(error.message)
                    raise error
                log.debug(f"Index '{target}' already exists, skipping")
                report.record(Step.INDEXES, target, Action.SKIPPED)
                continue

            try:
                collection.create_indexes([index.to_index_model()])
            except PyMongoError as e:
                raise self._fail(e, Step.INDEXES) from e

            log.info(f"Created index: {spec.name}.{index.describe()}")
            report.record(Step.INDEXES, target, Action.CREATED)

    # =========================================================================
    # Step 5: seed roles
    # =========================================================================

    def seed_roles(self, database: Database, report: ProvisionReport) -> None:
        """Write the seed role documents according to the seed policy."""
        if not self.spec.roles:
            return

        roles = database[ROLES_COLLECTION]
        now = datetime.now(UTC)

        for role in self.spec.roles:
            try:
                if self.seed_policy == "skip":
                    action = self._insert_role_if_absent(roles, role, now)
                else:
                    action = self._upsert_role(roles, role, now)
            except PyMongoError as e:
                raise self._fail(e, Step.SEED) from e

            scope = "all permissions" if role.grants_all else ", ".join(role.permissions)
            self._log.info(f"Seed role '{role.code}' ({scope}): {action.value}")
            report.record(Step.SEED, role.code, action)

    @staticmethod
    def _insert_role_if_absent(roles: Collection, role: RoleSeed, now: datetime) -> Action:
        result = roles.update_one(
            {"code": role.code},
            {"$setOnInsert": role.to_document(now)},
            upsert=True,
        )
        return Action.CREATED if result.upserted_id is not None else Action.SKIPPED

    @staticmethod
    def _upsert_role(roles: Collection, role: RoleSeed, now: datetime) -> Action:
        existing = roles.find_one({"code": role.code})

        if existing is None:
            document = role.to_document(now)
            result = roles.update_one(
                {"code": role.code},
                {"$setOnInsert": document},
                upsert=True,
            )
            return Action.CREATED if result.upserted_id is not None else Action.UNCHANGED

        if not role.differs_from(existing):
            return Action.UNCHANGED

        roles.update_one(
            {"_id": existing["_id"]},
            {"$set": {**role.content(), "updated_at": now}},
        )
        return Action.UPDATED

    # =========================================================================
    # Helpers
    # =========================================================================

    def _fail(self, exc: BaseException, step: Step) -> ProvisionError:
        error = classify_error(exc, step=step.value)
        self._log.error(f"Step '{step.value}' failed: {type(error).__name__}: {error.message}")
        return error


def provision(
    session: MongoSession,
    spec: SeedSpec,
    seed_policy: str = "upsert",
    skip_principal: bool = False,
    skip_seed: bool = False,
) -> ProvisionReport:
    """
    Provision the database described by ``spec`` through ``session``.

    Args:
        session: Connected MongoSession authenticated with an admin credential.
        spec: Seed specification; spec.database is the target database.
        seed_policy: "upsert" or "skip".
        skip_principal: Do not create the application principal.
        skip_seed: Do not write seed role documents.

    Returns:
        ProvisionReport: Per-object outcomes.

    Raises:
        ProvisionError: ConnectivityError, AuthorizationError or ValidationError
            on the first fatal failure.
    """
    provisioner = Provisioner(
        session,
        spec,
        seed_policy=seed_policy,
        skip_principal=skip_principal,
        skip_seed=skip_seed,
    )
    return provisioner.run()

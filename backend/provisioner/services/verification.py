"""
Post-provisioning verification.

Read-only check that the target database matches a SeedSpec: collections
exist, declared indexes exist with the declared options, and seed roles are
present with the declared permissions.
"""

import logging

from pymongo.errors import PyMongoError

from provisioner.core.database import MongoSession
from provisioner.errors import classify_error
from provisioner.models.report import CollectionStatus, VerificationReport
from provisioner.models.seed import ROLES_COLLECTION, SeedSpec


logger = logging.getLogger(__name__)


def verify_provisioning(session: MongoSession, spec: SeedSpec) -> VerificationReport:
    """
    Compare the database reachable through ``session`` against ``spec``.

    Args:
        session: Connected session.
        spec: Seed specification that was provisioned.

    Returns:
        VerificationReport: Collection states and a list of problems found.

    Raises:
        ProvisionError: If the database cannot be read.
    """
    report = VerificationReport(database=spec.database)
    database = session.database(spec.database)

    try:
        existing = set(database.list_collection_names())

        for collection_spec in spec.collections:
            if collection_spec.name not in existing:
                report.collections.append(CollectionStatus(name=collection_spec.name, exists=False))
                report.problems.append(f"Collection '{collection_spec.name}' is missing")
                continue

            collection = database[collection_spec.name]
            indexes = collection.index_information()
            report.collections.append(
                CollectionStatus(
                    name=collection_spec.name,
                    exists=True,
                    document_count=collection.count_documents({}),
                    index_names=sorted(name for name in indexes if name != "_id_"),
                )
            )

            for index in collection_spec.indexes:
                info = indexes.get(index.index_name)
                target = f"{collection_spec.name}.{index.index_name}"
                if info is None:
                    report.problems.append(f"Index '{target}' is missing")
                elif not index.matches(info):
                    report.problems.append(f"Index '{target}' does not match {index.describe()}")

        if spec.roles and ROLES_COLLECTION in existing:
            roles = database[ROLES_COLLECTION]
            for role in spec.roles:
                documents = list(roles.find({"code": role.code}))
                if not documents:
                    report.problems.append(f"Seed role '{role.code}' is missing")
                elif len(documents) > 1:
                    report.problems.append(
                        f"Seed role '{role.code}' is stored {len(documents)} times"
                    )
                elif documents[0].get("permissions") != role.permissions:
                    report.problems.append(
                        f"Seed role '{role.code}' has permissions "
                        f"{documents[0].get('permissions')}, expected {role.permissions}"
                    )

    except PyMongoError as e:
        error = classify_error(e, step="verify")
        logger.error(f"Verification failed: {error.message}")
        raise error from e

    for status in report.collections:
        if status.exists:
            logger.info(
                f"  {status.name}: {status.document_count} documents, "
                f"{len(status.index_names)} custom indexes"
            )
        else:
            logger.warning(f"  {status.name}: MISSING")

    for problem in report.problems:
        logger.warning(f"Verification problem: {problem}")

    return report

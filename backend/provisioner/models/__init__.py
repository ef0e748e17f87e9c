"""
Models Package for the gin-admin provisioner.

Pydantic models describing what gets provisioned (the seed spec) and what a
run did (reports).

Example Usage:
    ```python
    from provisioner.models import gin_admin_seed_spec, IndexSpec

    spec = gin_admin_seed_spec()
    for collection in spec.collections:
        print(collection.name, [index.describe() for index in collection.indexes])
    ```
"""

from provisioner.models.report import (
    Action,
    CollectionStatus,
    ProvisionReport,
    Step,
    StepOutcome,
    VerificationReport,
)
from provisioner.models.seed import (
    ALL_PERMISSIONS,
    AUDIT_LOGS_COLLECTION,
    FILE_STORAGE_COLLECTION,
    PERMISSIONS_COLLECTION,
    ROLES_COLLECTION,
    USERS_COLLECTION,
    CollectionSpec,
    IndexSpec,
    PrincipalSpec,
    RoleSeed,
    SeedSpec,
    gin_admin_seed_spec,
    load_seed_spec,
)


__all__ = [
    # Seed spec
    "ALL_PERMISSIONS",
    "AUDIT_LOGS_COLLECTION",
    "FILE_STORAGE_COLLECTION",
    "PERMISSIONS_COLLECTION",
    "ROLES_COLLECTION",
    "USERS_COLLECTION",
    "CollectionSpec",
    "IndexSpec",
    "PrincipalSpec",
    "RoleSeed",
    "SeedSpec",
    "gin_admin_seed_spec",
    "load_seed_spec",
    # Reports
    "Action",
    "CollectionStatus",
    "ProvisionReport",
    "Step",
    "StepOutcome",
    "VerificationReport",
]

"""
Declarative seed specification models.

Describes everything the provisioner must make exist in the target database:
the application principal, the collections with their indexes, and the seed
role documents. The gin_admin bring-up spec is built by gin_admin_seed_spec().
"""

from datetime import UTC, datetime
from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator
from pymongo import ASCENDING, DESCENDING, IndexModel

from provisioner.config import Settings, get_settings
from provisioner.errors import ValidationError


# =============================================================================
# CONSTANTS
# =============================================================================

USERS_COLLECTION = "users"
ROLES_COLLECTION = "roles"
PERMISSIONS_COLLECTION = "permissions"
AUDIT_LOGS_COLLECTION = "audit_logs"
FILE_STORAGE_COLLECTION = "file_storage"

ALL_PERMISSIONS = "*"

VALID_DIRECTIONS = (ASCENDING, DESCENDING)


# =============================================================================
# MODELS
# =============================================================================


class IndexSpec(BaseModel):
    """
    A single index declaration.

    Attributes:
        keys: Ordered (field, direction) pairs; direction is 1 or -1
        unique: Reject duplicate key values
        sparse: Skip documents that lack the indexed field
        name: Explicit index name; defaults to MongoDB's generated name
    """

    keys: list[tuple[str, int]] = Field(..., min_length=1)
    unique: bool = False
    sparse: bool = False
    name: str | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("keys")
    @classmethod
    def validate_keys(cls, v: list[tuple[str, int]]) -> list[tuple[str, int]]:
        """Reject empty field names, duplicate fields and non 1/-1 directions."""
        seen: set[str] = set()
        for field, direction in v:
            if not field or not field.strip():
                raise ValueError("Index field name must not be empty")
            if field in seen:
                raise ValueError(f"Index field '{field}' is declared more than once")
            if direction not in VALID_DIRECTIONS:
                raise ValueError(
                    f"Invalid direction {direction!r} for index field '{field}'. "
                    "Must be 1 (ascending) or -1 (descending)"
                )
            seen.add(field)
        return v

    @property
    def index_name(self) -> str:
        """Explicit name, or the name MongoDB would generate (``field_dir`` joined by ``_``)."""
        if self.name:
            return self.name
        return "_".join(f"{field}_{direction}" for field, direction in self.keys)

    def to_index_model(self) -> IndexModel:
        """Build the pymongo IndexModel for this declaration."""
        options: dict[str, Any] = {"name": self.index_name}
        if self.unique:
            options["unique"] = True
        if self.sparse:
            options["sparse"] = True
        return IndexModel(list(self.keys), **options)

    def matches(self, info: dict[str, Any]) -> bool:
        """
        Compare against an ``index_information()`` entry.

        Directions are compared as integers since the server may report 1.0.
        """
        existing_keys = [(field, int(direction)) for field, direction in info.get("key", [])]
        return (
            existing_keys == list(self.keys)
            and bool(info.get("unique", False)) == self.unique
            and bool(info.get("sparse", False)) == self.sparse
        )

    def describe(self) -> str:
        """Human readable form used in logs, e.g. ``mobile_1 (unique, sparse)``."""
        flags = [flag for flag, on in (("unique", self.unique), ("sparse", self.sparse)) if on]
        return f"{self.index_name} ({', '.join(flags)})" if flags else self.index_name


class CollectionSpec(BaseModel):
    """A collection and the indexes it must carry."""

    name: str = Field(..., min_length=1)
    indexes: list[IndexSpec] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_index_names(self) -> "CollectionSpec":
        names = [index.index_name for index in self.indexes]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(
                f"Collection '{self.name}' declares index names more than once: "
                f"{', '.join(duplicates)}"
            )
        return self


class PrincipalSpec(BaseModel):
    """
    Application principal created in the admin database.

    The secret is held as a SecretStr so it never shows up in reprs or logs.
    """

    name: str = Field(..., min_length=1)
    secret: SecretStr
    role: str = Field(default="readWrite", min_length=1)
    grant_db: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)

    def role_grants(self) -> list[dict[str, str]]:
        """Role documents for the ``createUser`` command, scoped to grant_db."""
        return [{"role": self.role, "db": self.grant_db}]


class RoleSeed(BaseModel):
    """
    Seed role document, keyed by its natural key ``code``.

    Permissions are kept as an ordered list of distinct strings; ``"*"``
    grants everything.
    """

    code: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: str = ""
    permissions: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, v: list[str]) -> list[str]:
        """Drop duplicates, keep declaration order, reject blank entries."""
        result: list[str] = []
        for permission in v:
            if not permission or not permission.strip():
                raise ValueError("Permission entries must not be empty")
            if permission not in result:
                result.append(permission)
        return result

    @property
    def grants_all(self) -> bool:
        return ALL_PERMISSIONS in self.permissions

    def content(self) -> dict[str, Any]:
        """Fields owned by the seed (everything except timestamps)."""
        return {
            "name": self.name,
            "description": self.description,
            "permissions": list(self.permissions),
        }

    def to_document(self, now: datetime | None = None) -> dict[str, Any]:
        """Full document as inserted; both timestamps share one instant."""
        now = now or datetime.now(UTC)
        return {"code": self.code, **self.content(), "created_at": now, "updated_at": now}

    def differs_from(self, document: dict[str, Any]) -> bool:
        """Check whether a stored document drifted from this seed."""
        return any(document.get(field) != value for field, value in self.content().items())


class SeedSpec(BaseModel):
    """
    Everything one provisioning run must make exist.

    Attributes:
        database: Target application database name
        principal: Application principal to create
        collections: Collections to create, in order, with their indexes
        roles: Seed role documents written to the roles collection
    """

    database: str = Field(..., min_length=1)
    principal: PrincipalSpec
    collections: list[CollectionSpec] = Field(default_factory=list)
    roles: list[RoleSeed] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_spec(self) -> "SeedSpec":
        collection_names = [collection.name for collection in self.collections]
        if len(set(collection_names)) != len(collection_names):
            raise ValueError("Collection names must be unique")

        role_codes = [role.code for role in self.roles]
        if len(set(role_codes)) != len(role_codes):
            raise ValueError("Seed role codes must be unique")

        if self.roles and ROLES_COLLECTION not in collection_names:
            raise ValueError(
                f"Seed roles require the '{ROLES_COLLECTION}' collection to be declared"
            )
        return self

    @property
    def collection_names(self) -> list[str]:
        return [collection.name for collection in self.collections]


# =============================================================================
# BUILDERS
# =============================================================================


def load_seed_spec(data: dict[str, Any]) -> SeedSpec:
    """
    Validate a raw mapping (e.g. parsed JSON) into a SeedSpec.

    Raises:
        ValidationError: If the mapping does not describe a valid spec.
    """
    try:
        return SeedSpec.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid seed specification: {e}", step="load_spec", cause=e) from e


def gin_admin_seed_spec(settings: Settings | None = None) -> SeedSpec:
    """
    Build the gin_admin bring-up spec.

    Database, principal name, secret and role come from settings; the
    collection, index and role layout is fixed.

    Args:
        settings: Optional Settings instance. If None, uses get_settings().
    """
    if settings is None:
        settings = get_settings()

    database = settings.mongodb_db_name

    return SeedSpec(
        database=database,
        principal=PrincipalSpec(
            name=settings.app_db_user,
            secret=settings.app_db_password,
            role=settings.app_db_role,
            grant_db=database,
        ),
        collections=[
            CollectionSpec(
                name=USERS_COLLECTION,
                indexes=[
                    IndexSpec(keys=[("username", ASCENDING)], unique=True),
                    IndexSpec(keys=[("email", ASCENDING)], unique=True),
                    IndexSpec(keys=[("mobile", ASCENDING)], unique=True, sparse=True),
                ],
            ),
            CollectionSpec(
                name=ROLES_COLLECTION,
                indexes=[IndexSpec(keys=[("code", ASCENDING)], unique=True)],
            ),
            CollectionSpec(
                name=PERMISSIONS_COLLECTION,
                indexes=[IndexSpec(keys=[("code", ASCENDING)], unique=True)],
            ),
            CollectionSpec(
                name=AUDIT_LOGS_COLLECTION,
                indexes=[
                    IndexSpec(keys=[("created_at", DESCENDING)]),
                    IndexSpec(keys=[("user_id", ASCENDING)]),
                    IndexSpec(keys=[("action", ASCENDING)]),
                ],
            ),
            CollectionSpec(
                name=FILE_STORAGE_COLLECTION,
                indexes=[
                    IndexSpec(keys=[("filename", ASCENDING)]),
                    IndexSpec(keys=[("uploaded_at", DESCENDING)]),
                ],
            ),
        ],
        roles=[
            RoleSeed(
                code="admin",
                name="管理员",
                description="系统管理员角色",
                permissions=[ALL_PERMISSIONS],
            ),
            RoleSeed(
                code="user",
                name="普通用户",
                description="普通用户角色",
                permissions=["read", "write"],
            ),
        ],
    )

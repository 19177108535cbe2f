"""Pydantic models for export configuration and scripting rules."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Export Configuration
# ============================================================================


class OutputType(str, Enum):
    """Arrangement of the scripted output."""

    STDOUT = "stdout"  # straight to the output stream, no files
    FILE = "file"  # a single file for all objects
    FILES = "files"  # one file per object, name prefixed by type
    TREE = "tree"  # one directory per object type


class ExportConfig(BaseModel):
    """Complete export configuration (``[export]`` table of export.toml).

    Example:
        >>> config = ExportConfig(server="localhost", database="Shop")
        >>> config.output_type
        <OutputType.STDOUT: 'stdout'>
        >>> config.is_type_excluded("table")
        False
    """

    model_config = ConfigDict(extra="forbid")

    # Object selection
    server: str | None = None
    database: str | None = None
    object_name: str | None = None
    exclude_types: list[str] = Field(default_factory=list)

    # Output layout
    output_type: OutputType = OutputType.STDOUT
    output_directory: str | None = None
    order_filename: str = "fileOrder.txt"

    # Script generation
    script_database: bool = False
    script_collation: bool = False
    script_file_groups: bool = False
    schema_qualify: bool = False
    extended_properties: bool = False
    foreign_keys_separately: bool = False

    # Connection
    user_name: str | None = None
    password: str | None = None
    driver: str = "ODBC Driver 18 for SQL Server"
    encrypt: bool = True
    trust_server_certificate: bool = False

    @field_validator("exclude_types", mode="before")
    @classmethod
    def _split_exclude_types(cls, value: object) -> object:
        """Accept ``"Table,View"`` as well as ``["Table", "View"]``."""
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    def is_type_excluded(self, object_type: str) -> bool:
        """True if *object_type* is in the exclusion list (case-insensitive)."""
        wanted = object_type.upper()
        return any(excluded.upper() == wanted for excluded in self.exclude_types)


# ============================================================================
# Scripting Rules (constant lookup tables)
# ============================================================================


class ScriptingRules(BaseModel):
    """Immutable lookup tables driving classification, ordering and exclusion.

    Injected into the classifier, the ordering key functions and the
    scripting strategy.  ``DEFAULT_RULES`` holds the SQL Server defaults.
    """

    model_config = ConfigDict(frozen=True)

    # Enumerable database object types, in enumeration order
    enumerated_types: tuple[str, ...] = (
        "ApplicationRole",
        "ServiceBroker",
        "Default",
        "ExtendedStoredProcedure",
        "FullTextCatalog",
        "MessageType",
        "PartitionFunction",
        "PartitionScheme",
        "DatabaseRole",
        "Rule",
        "Schema",
        "ServiceContract",
        "ServiceQueue",
        "ServiceRoute",
        "SqlAssembly",
        "StoredProcedure",
        "Synonym",
        "Table",
        "User",
        "UserDefinedAggregate",
        "UserDefinedDataType",
        "UserDefinedFunction",
        "UserDefinedType",
        "View",
        "XmlSchemaCollection",
        "Certificate",
        "SymmetricKey",
        "AsymmetricKey",
        "PlanGuide",
        "Sequence",
        "UserDefinedTableTypes",
        "FullTextStopList",
        "SearchPropertyList",
    )

    # Order to script objects that have dependencies
    dependent_type_order: tuple[str, ...] = (
        "UserDefinedFunction",
        "Table",
        "View",
        "StoredProcedure",
        "Default",
        "Rule",
        "Trigger",
        "UserDefinedAggregate",
        "Synonym",
        "UserDefinedDataType",
        "XmlSchemaCollection",
        "UserDefinedType",
        "PartitionScheme",
        "PartitionFunction",
        "SqlAssembly",
    )

    # Order to script objects without dependencies
    independent_type_order: tuple[str, ...] = ("Role", "User", "Schema")

    # Types scripted with an IF NOT EXISTS guard
    if_not_exists_types: frozenset[str] = frozenset(
        {"Role", "MessageType", "Schema", "ServiceContract", "ServiceQueue", "ServiceRoute", "User"}
    )

    excluded_schemas: frozenset[str] = frozenset({"sys", "INFORMATION_SCHEMA"})

    # Highest object id still owned by the server, per type
    system_id_thresholds: dict[str, int] = Field(
        default_factory=lambda: {
            "MessageType": 65535,
            "ServiceContract": 65535,
            "BrokerService": 65535,
            "ServiceRoute": 65536,  # [AutoCreatedLocal]
        }
    )

    default_service_queues: frozenset[str] = frozenset(
        {
            "[dbo].[EventNotificationErrorsQueue]",
            "[dbo].[QueryNotificationErrorsQueue]",
            "[dbo].[ServiceBrokerQueue]",
        }
    )

    default_broker_services: frozenset[str] = frozenset(
        {
            "[http://schemas.microsoft.com/SQL/Notifications/EventNotificationService]",
            "[http://schemas.microsoft.com/SQL/Notifications/QueryNotificationService]",
            "[http://schemas.microsoft.com/SQL/ServiceBroker/ServiceBroker]",
        }
    )

    # Extended property marking designer/tooling scaffolding
    tools_support_property: str = "microsoft_database_tools_support"


DEFAULT_RULES = ScriptingRules()

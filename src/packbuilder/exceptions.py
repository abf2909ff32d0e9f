class PackBuilderError(Exception):
    """Base exception for all application-specific errors."""

    pass


# --- 1. Errors related to loading and parsing the build file ---
class ConfigurationError(PackBuilderError):
    """Base class for errors encountered while finding, reading, or parsing build files."""

    pass


class ConfigFileMissingError(ConfigurationError):
    """Raised when the build file cannot be found."""

    pass


class ConfigParsingError(ConfigurationError):
    """Raised when a YAML build file is syntactically incorrect."""

    pass


class ConfigValidationError(ConfigurationError):
    """Raised when the build file fails structural validation (e.g., Pydantic)."""

    pass


# --- 2. Errors related to the logical validity of what was asked for ---
class DefinitionError(PackBuilderError):
    """Base class for errors in the logical definition of a build."""

    pass


class BuilderDefinitionError(DefinitionError):
    """Raised when the builder image lacks metadata the lifecycle needs (uid, gid, version)."""

    pass


class BindFormatError(DefinitionError):
    """Raised for a bind mount that is not in src:dst[:mode] form."""

    pass


class InvalidVersionError(PackBuilderError, ValueError):
    """Raised when a version string is not a semantic version."""

    pass


# --- 3. Errors raised while preparing or running a lifecycle phase ---
class PhaseError(PackBuilderError):
    """Base class for errors of a single lifecycle phase."""

    pass


class PhaseConfigError(PhaseError):
    """Raised when a configuration operation fails while creating or updating a phase config."""

    pass


class PhaseFactoryError(PhaseError):
    """Raised when a phase cannot be materialized from its config."""

    pass


class PhaseRunError(PhaseError):
    """Raised when the phase container fails to start or exits non-zero."""

    pass


class PhaseCleanupError(PhaseError):
    """Raised when runtime resources of a phase cannot be released."""

    pass


# --- 4. Errors related to registry credentials ---
class RegistryAuthError(PackBuilderError):
    """Raised when registry credentials cannot be resolved."""

    pass


class InvalidReferenceError(RegistryAuthError):
    """Raised when an image reference cannot be parsed."""

    pass


# --- 5. Errors reported by the container runtime ---
class RuntimeOperationError(PackBuilderError):
    """Raised when the container runtime rejects an operation."""

    pass

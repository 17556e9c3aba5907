"""ADP - self-describing process discovery and free-text dispatch

A process publishes a capability manifest in answer to `Action=Info`. This
library discovers and caches those manifests, matches free-text
instructions to a handler, extracts and validates its parameters, and
dispatches the resulting message as a read or a write.
"""

from adp.manifest import (
    PROTOCOL_VERSION,
    PARAMETER_TYPES,
    HANDLER_CATEGORIES,
    ParameterValidation,
    ParameterDescriptor,
    HandlerDescriptor,
    ManifestCapabilities,
    CapabilityManifest,
)

from adp.schema_validation import (
    ManifestError,
    ManifestParseError,
    ManifestSchemaError,
    UnsupportedProtocolError,
    ManifestSchemaValidator,
    parse_manifest,
    serialize_manifest,
)

from adp.compliance import (
    ComplianceReport,
    check_compliance,
)

from adp.config import (
    AdpConfig,
    set_verbose_logging,
)

from adp.message import (
    Tag,
    build_message_tags,
)

from adp.operation import (
    READ,
    WRITE,
    classify_operation,
    infer_operation,
)

from adp.matcher import (
    Candidate,
    MatchResult,
    NoMatch,
    MatchStrategy,
    HandlerMatcher,
    match_handler,
)

from adp.extraction import (
    ParameterExtractor,
    extract_parameters,
    detect_parameter_format,
)

from adp.validation import (
    ParameterValidationError,
    MissingParameterError,
    ParameterTypeError,
    PatternMismatchError,
    RangeViolationError,
    EnumViolationError,
    InvalidAddressError,
    ValidationResult,
    ParameterValidator,
    validate_parameters,
)

from adp.transport import (
    TransportError,
    HttpError,
    TransportTimeoutError,
    ProcessError,
    Signer,
    Transport,
    HttpTransport,
)

from adp.discovery import (
    MISS,
    CacheEntry,
    DiscoveryCache,
    DiscoveryError,
    DiscoveryTimeoutError,
    DiscoveryClient,
)

from adp.response import (
    DispatchMethod,
    DispatchResult,
    ErrorCategory,
)

from adp.dispatcher import Dispatcher

__all__ = [
    # Manifest model
    "PROTOCOL_VERSION",
    "PARAMETER_TYPES",
    "HANDLER_CATEGORIES",
    "ParameterValidation",
    "ParameterDescriptor",
    "HandlerDescriptor",
    "ManifestCapabilities",
    "CapabilityManifest",
    # Schema
    "ManifestError",
    "ManifestParseError",
    "ManifestSchemaError",
    "UnsupportedProtocolError",
    "ManifestSchemaValidator",
    "parse_manifest",
    "serialize_manifest",
    # Compliance
    "ComplianceReport",
    "check_compliance",
    # Config
    "AdpConfig",
    "set_verbose_logging",
    # Messages
    "Tag",
    "build_message_tags",
    "READ",
    "WRITE",
    "classify_operation",
    "infer_operation",
    # Matching
    "Candidate",
    "MatchResult",
    "NoMatch",
    "MatchStrategy",
    "HandlerMatcher",
    "match_handler",
    # Extraction and validation
    "ParameterExtractor",
    "extract_parameters",
    "detect_parameter_format",
    "ParameterValidationError",
    "MissingParameterError",
    "ParameterTypeError",
    "PatternMismatchError",
    "RangeViolationError",
    "EnumViolationError",
    "InvalidAddressError",
    "ValidationResult",
    "ParameterValidator",
    "validate_parameters",
    # Transport
    "TransportError",
    "HttpError",
    "TransportTimeoutError",
    "ProcessError",
    "Signer",
    "Transport",
    "HttpTransport",
    # Discovery
    "MISS",
    "CacheEntry",
    "DiscoveryCache",
    "DiscoveryError",
    "DiscoveryTimeoutError",
    "DiscoveryClient",
    # Dispatch
    "DispatchMethod",
    "DispatchResult",
    "ErrorCategory",
    "Dispatcher",
]

__version__ = "0.1.0"

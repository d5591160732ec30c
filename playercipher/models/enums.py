from enum import Enum


class OperationKind(str, Enum):
    SWAP = "swap"
    SPLICE = "splice"
    REVERSE = "reverse"
    UNKNOWN = "unknown"


class MediaType(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"


class ResolutionStatus(str, Enum):
    RESOLVED = "resolved"
    DEGRADED = "degraded"
    UNRESOLVED = "unresolved"


class ResolutionIssue(str, Enum):
    # The player had no recognizable cipher function, the signature was left as is.
    SIGNATURE_OPERATIONS_MISSING = "signature_operations_missing"
    # The signatureCipher field lacked its url or s component.
    SIGNATURE_CIPHER_MALFORMED = "signature_cipher_malformed"
    UNKNOWN_OPERATION_SKIPPED = "unknown_operation_skipped"
    N_FUNCTION_MISSING = "n_function_missing"
    N_EVALUATION_FAILED = "n_evaluation_failed"

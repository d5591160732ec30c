from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class SwapOperation(BaseModel):
    """Exchange the first character with the one at ``index % len``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["swap"] = "swap"
    index: int = Field(..., description="Position swapped with position 0")


class SpliceOperation(BaseModel):
    """Drop the first ``count`` characters."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["splice"] = "splice"
    count: int = Field(..., ge=0, description="Number of leading characters removed")


class ReverseOperation(BaseModel):
    """Reverse the whole character sequence."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["reverse"] = "reverse"


class UnknownOperation(BaseModel):
    """A helper whose body matched none of the known shapes. Replayed as a no-op."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["unknown"] = "unknown"


CipherOperation = Annotated[
    Union[SwapOperation, SpliceOperation, ReverseOperation, UnknownOperation],
    Field(discriminator="kind"),
]

OPERATIONS_ADAPTER: TypeAdapter[list[CipherOperation]] = TypeAdapter(list[CipherOperation])


class CachedPlayerProfile(BaseModel):
    """Artifacts recovered from one player version."""

    model_config = ConfigDict(frozen=True)

    player_version_id: str = Field(..., min_length=1, description="Player build identifier")
    operations: tuple[CipherOperation, ...] = Field(
        default=(), description="Signature descrambling steps, in replay order"
    )
    n_function_source: str | None = Field(
        None, description="Self-contained JS function transforming the n parameter"
    )

    @property
    def has_cipher_operations(self) -> bool:
        return bool(self.operations)

    @property
    def has_n_function(self) -> bool:
        return bool(self.n_function_source)

    @property
    def has_unknown_operations(self) -> bool:
        return any(isinstance(op, UnknownOperation) for op in self.operations)


def dump_operations(operations) -> bytes:
    """Encode an operation list as compact JSON."""
    return OPERATIONS_ADAPTER.dump_json(list(operations))


def load_operations(data: bytes | str) -> list[CipherOperation]:
    """Decode an operation list produced by ``dump_operations``."""
    return OPERATIONS_ADAPTER.validate_json(data)

"""Response schemas for the off-chain REST service.

Every endpoint answers with the envelope ``{code, data?, msg?}`` where
``code == 0`` means success.  :func:`decode` validates the envelope and the
endpoint-specific ``data`` payload with Pydantic and returns a tagged
result:

* :class:`ApiSuccess` -- carries the typed payload (or ``None`` for
  endpoints without one).
* :class:`ApiFailure` -- carries the service's code and message.

Payloads that do not match their schema raise
:class:`~core.errors.ResponseFormatError`.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, Optional, Type, TypeVar, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    ValidationError,
)

from core.errors import ResponseFormatError

T = TypeVar("T", bound=BaseModel)


class Envelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    code: StrictInt
    msg: Optional[str] = None
    data: Optional[Any] = None


class LoginData(BaseModel):
    """``POST /user/login`` payload."""

    model_config = ConfigDict(extra="ignore")

    token: str = Field(
        min_length=1, validation_alias=AliasChoices("token", "jwt"),
    )


class FaucetStatus(BaseModel):
    """``GET /faucet/status`` payload.

    ``avaliable_timestamp`` keeps the service's own spelling.
    """

    model_config = ConfigDict(extra="ignore")

    is_able_to_faucet: bool
    avaliable_timestamp: int = 0

    @property
    def next_available(self) -> datetime:
        return datetime.fromtimestamp(self.avaliable_timestamp)


@dataclass(frozen=True)
class ApiSuccess(Generic[T]):
    data: Optional[T] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class ApiFailure:
    code: int
    message: str


ApiResult = Union[ApiSuccess, ApiFailure]


def decode(payload: Any, model: Optional[Type[T]] = None) -> ApiResult:
    """Validate *payload* and return a tagged result.

    Args:
        payload: Decoded JSON body.
        model: Schema of ``data`` on success; ``None`` when the endpoint
            carries no payload.

    Raises:
        ResponseFormatError: The envelope or its ``data`` is malformed.
    """
    try:
        envelope = Envelope.model_validate(payload)
    except ValidationError as exc:
        raise ResponseFormatError(f"Malformed response envelope: {exc}") from exc

    if envelope.code != 0:
        return ApiFailure(code=envelope.code, message=envelope.msg or "Unknown error")

    if model is None:
        return ApiSuccess(data=None, message=envelope.msg)

    if envelope.data is None:
        raise ResponseFormatError(f"Response is missing {model.__name__} data")
    try:
        data = model.model_validate(envelope.data)
    except ValidationError as exc:
        raise ResponseFormatError(f"Malformed {model.__name__}: {exc}") from exc
    return ApiSuccess(data=data, message=envelope.msg)

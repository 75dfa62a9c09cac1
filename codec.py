import pydantic

from typing_extensions import Protocol, override

from exc import DecodeError, EncodeError
from models import AdmissionReview


class Codec(Protocol):
    def decode(self, data: bytes) -> AdmissionReview: ...

    def encode(self, review: AdmissionReview) -> bytes: ...


class JSONCodec(Codec):
    """Reads and writes AdmissionReview envelopes as JSON."""

    @override
    def decode(self, data):
        try:
            review = AdmissionReview.model_validate_json(data)
        except pydantic.ValidationError as err:
            raise DecodeError(str(err)) from err

        if review.request is None:
            raise DecodeError("admission review does not contain a request")

        return review

    @override
    def encode(self, review):
        try:
            return review.model_dump_json(exclude_none=True).encode()
        except ValueError as err:
            # PydanticSerializationError is a ValueError
            raise EncodeError(f"could not encode response: {err}") from err

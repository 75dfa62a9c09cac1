import base64
import json

import pytest
import pydantic

from codec import JSONCodec
from exc import DecodeError
from models import (
    AdmissionResponse,
    AdmissionReview,
    AdmissionReviewStatus,
    Patch,
    PatchAction,
    Pod,
)


PATCH = Patch([PatchAction(op="replace", path="/spec/containers/0/image", value="x")])


def test_response_uid_survives_codec():
    codec = JSONCodec()
    review = AdmissionReview(response=AdmissionResponse(uid="abcd-1234", allowed=True))
    decoded = AdmissionReview.model_validate_json(codec.encode(review))
    assert decoded.response.uid == "abcd-1234"


def test_patch_is_base64_encoded():
    res = AdmissionResponse(uid="1", allowed=True, patchType="JSONPatch", patch=PATCH)
    assert json.loads(base64.b64decode(res.patch)) == [
        {"op": "replace", "path": "/spec/containers/0/image", "value": "x"}
    ]


def test_patch_requires_patch_type():
    with pytest.raises(pydantic.ValidationError, match="missing patchType"):
        AdmissionResponse(uid="1", allowed=True, patch=PATCH)


def test_patch_type_requires_patch():
    with pytest.raises(pydantic.ValidationError, match="there is no patch"):
        AdmissionResponse(uid="1", allowed=True, patchType="JSONPatch")


def test_patch_requires_allowed():
    with pytest.raises(pydantic.ValidationError, match="allowed"):
        AdmissionResponse(uid="1", allowed=False, patchType="JSONPatch", patch=PATCH)


def test_patch_rejected_with_error_status():
    with pytest.raises(pydantic.ValidationError, match="error status"):
        AdmissionResponse(
            uid="1",
            allowed=True,
            patchType="JSONPatch",
            patch=PATCH,
            status=AdmissionReviewStatus(message="boom"),
        )


def test_invalid_base64_patch():
    with pytest.raises(pydantic.ValidationError):
        AdmissionResponse(
            uid="1",
            allowed=True,
            patchType="JSONPatch",
            patch=base64.b64encode(b"not a patch").decode(),
        )


def test_review_needs_request_or_response():
    with pytest.raises(pydantic.ValidationError):
        AdmissionReview()


def test_codec_rejects_review_without_request():
    codec = JSONCodec()
    review = AdmissionReview(response=AdmissionResponse(uid="1", allowed=True))
    with pytest.raises(DecodeError, match="does not contain a request"):
        codec.decode(codec.encode(review))


def test_codec_rejects_unknown_api_version():
    with pytest.raises(DecodeError):
        JSONCodec().decode(
            b'{"apiVersion": "admission.k8s.io/v2", "request": {"uid": "1"}}'
        )


def test_pod_keeps_unknown_fields():
    raw = {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": "p", "annotations": {"a": "b"}},
        "spec": {
            "nodeName": "node-1",
            "containers": [{"name": "compute", "image": "x", "args": ["--foo"]}],
        },
    }
    assert Pod.model_validate(raw).model_dump(exclude_none=True) == raw

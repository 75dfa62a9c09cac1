import functools
import logging
import sys

import pydantic

from flask import Flask, request, current_app

from codec import JSONCodec
from exc import (
    ApplicationError,
    ConfigurationError,
    DecodeError,
    EmptyBodyError,
    UnsupportedMediaTypeError,
)
from models import (
    AdmissionRequest,
    AdmissionReview,
    AdmissionResponse,
    AdmissionReviewStatus,
    PatchType,
    Pod,
)
from patches import build_patch
from policy import MutationPolicy, is_mutation_required

LOG = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


class DEFAULTS:
    IGNORED_NAMESPACES = "kube-system,kube-public"
    REQUIRED_LABELS = "kubevirt.io/flavor=android,kubevirt.io=virt-launcher"
    TARGET_CONTAINER = "compute"
    TARGET_IMAGE = "quay.io/quamotion/android-x86-launcher:latest"
    CODEC = JSONCodec


def jsonresponse():
    """Encodes the AdmissionReview returned by a view function with the
    application's codec."""

    def _outer(func):
        @functools.wraps(func)
        def _inner(*args, **kwargs):
            res = func(*args, **kwargs)
            return current_app.response_class(
                current_app.codec.encode(res), status=200, mimetype="application/json"
            )

        return _inner

    return _outer


def error_response(uid, message):
    return AdmissionResponse(
        uid=uid,
        allowed=False,
        status=AdmissionReviewStatus(message=message),
    )


def review_pod(policy: MutationPolicy, req: AdmissionRequest) -> AdmissionResponse:
    LOG.info(
        "AdmissionReview for Kind=%s, Namespace=%s Name=%s UID=%s Operation=%s UserInfo=%s",
        req.kind,
        req.namespace,
        req.name,
        req.uid,
        req.operation,
        req.userInfo,
    )
    LOG.debug("Object json: %s", req.object)

    if req.object is None:
        LOG.error("admission request %s has no object", req.uid)
        return error_response(req.uid, "admission request does not contain an object")

    try:
        pod = Pod.model_validate(req.object)
    except pydantic.ValidationError as err:
        LOG.error("could not decode pod: %s", err)
        return error_response(req.uid, str(err))

    # Pods submitted for creation often leave the namespace to the request.
    namespace = pod.metadata.namespace or req.namespace
    name = pod.metadata.name or pod.metadata.generateName or req.name

    if not is_mutation_required(policy, namespace, pod.metadata.labels, name=name):
        LOG.info("Skipping mutation for %s/%s due to policy check", namespace, name)
        return AdmissionResponse(uid=req.uid, allowed=True)

    patch = build_patch(policy, pod.spec.containers)

    try:
        response = AdmissionResponse(
            uid=req.uid,
            allowed=True,
            patchType=PatchType.JSONPatch,
            patch=patch,
        )
    except pydantic.ValidationError as err:
        LOG.error("could not encode patch: %s", err)
        return error_response(req.uid, str(err))

    LOG.info("AdmissionResponse: patch=%s", patch.model_dump_json())
    return response


@jsonresponse()
def mutate_pod():
    body = request.get_data()
    if not body:
        LOG.error("empty body")
        raise EmptyBodyError("empty body")

    content_type = request.headers.get("content-type")
    if content_type != "application/json":
        LOG.error("Content-Type=%s, expect application/json", content_type)
        raise UnsupportedMediaTypeError(
            "invalid Content-Type, expect `application/json`"
        )

    try:
        review = current_app.codec.decode(body)
    except DecodeError as err:
        LOG.error("can't decode body: %s", err)
        # The uid lives in the envelope we failed to read, so it cannot be echoed.
        return AdmissionReview(response=error_response(None, str(err)))

    return AdmissionReview(
        apiVersion=review.apiVersion,
        response=review_pod(current_app.policy, review.request),
    )


def handle_applicationerror(err):
    if err.status_code >= 500:
        LOG.error("%s", err)
    return str(err), err.status_code, {"content-type": "text/plain"}


def health():
    return "OK", 200, {"content-type": "text/plain"}


def create_app(**config) -> Flask:
    """Use an application factory [1] to create the Flask app.

    Configuration comes from DEFAULTS, then from INJECTOR_* environment
    variables, then from keyword arguments, so tests can build an app with
    their own policy or codec.

    [1]: https://flask.palletsprojects.com/en/3.0.x/patterns/appfactories/
    """

    app = Flask(__name__)
    app.config.from_object(DEFAULTS)
    app.config.from_prefixed_env("INJECTOR")
    if config:
        app.config.update(config)

    try:
        app.policy = MutationPolicy.from_config(app.config)
    except ConfigurationError as err:
        LOG.error("Invalid mutation policy configuration: %s", err)
        sys.exit(1)

    app.codec = app.config["CODEC"]()

    app.errorhandler(ApplicationError)(handle_applicationerror)
    app.add_url_rule("/healthz", view_func=health)
    app.add_url_rule("/mutate", view_func=mutate_pod, methods=["POST"])

    return app

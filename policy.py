import logging

from collections.abc import Mapping
from pydantic import BaseModel, ConfigDict, field_validator

from exc import ConfigurationError

LOG = logging.getLogger(__name__)


def _split(val):
    if isinstance(val, str):
        return [item.strip() for item in val.split(",") if item.strip()]
    return list(val)


class MutationPolicy(BaseModel):
    """Which pods get mutated, and how.

    Built once when the application starts and shared read-only between
    requests.
    """

    model_config = ConfigDict(frozen=True)

    ignored_namespaces: frozenset[str] = frozenset({"kube-system", "kube-public"})
    required_labels: tuple[tuple[str, str], ...] = (
        ("kubevirt.io/flavor", "android"),
        ("kubevirt.io", "virt-launcher"),
    )
    target_container: str = "compute"
    target_image: str = "quay.io/quamotion/android-x86-launcher:latest"

    @field_validator("target_container", "target_image")
    @classmethod
    def validate_not_empty(cls, val):
        if not val:
            raise ValueError("must not be empty")
        return val

    @classmethod
    def from_config(cls, config: Mapping) -> "MutationPolicy":
        """Build a policy from Flask configuration values.

        IGNORED_NAMESPACES is a comma-separated list of namespaces and
        REQUIRED_LABELS a comma-separated list of key=value pairs. Both may
        also be given as sequences.
        """

        required_labels = []
        for item in _split(config["REQUIRED_LABELS"]):
            if isinstance(item, str):
                key, sep, value = item.partition("=")
                if not sep or not key:
                    raise ConfigurationError(f"invalid required label: {item!r}")
                item = (key.strip(), value.strip())
            required_labels.append(tuple(item))

        try:
            return cls(
                ignored_namespaces=frozenset(_split(config["IGNORED_NAMESPACES"])),
                required_labels=tuple(required_labels),
                target_container=config["TARGET_CONTAINER"],
                target_image=config["TARGET_IMAGE"],
            )
        except ValueError as err:
            raise ConfigurationError(str(err)) from err


def is_mutation_required(
    policy: MutationPolicy,
    namespace: str | None,
    labels: Mapping[str, str] | None,
    name: str | None = None,
) -> bool:
    if namespace in policy.ignored_namespaces:
        LOG.info(
            "Skip mutation for %s because it is in special namespace %s",
            name,
            namespace,
        )
        return False

    if not labels:
        LOG.info("Skip mutation for %s because it doesn't have any labels", name)
        return False

    for key, expected in policy.required_labels:
        if key not in labels:
            LOG.info(
                "Skip mutation for %s because it doesn't have the %s label", name, key
            )
            return False

        if labels[key] != expected:
            LOG.info(
                "Skip mutation for %s because label %s is %r instead of %r",
                name,
                key,
                labels[key],
                expected,
            )
            return False

    LOG.info("Mutation policy for %s/%s: required", namespace, name)
    return True

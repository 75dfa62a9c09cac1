import logging

from collections.abc import Sequence

from models import Container, Patch, PatchAction, PatchOp
from policy import MutationPolicy

LOG = logging.getLogger(__name__)


def build_patch(policy: MutationPolicy, containers: Sequence[Container]) -> Patch:
    """Replace the image of the target container.

    If more than one container has the target name, the last one is patched.
    An empty patch is returned when there is no such container.
    """

    target_index = None
    for index, container in enumerate(containers):
        LOG.info("Found a %s container", container.name)
        if container.name == policy.target_container:
            target_index = index

    if target_index is None:
        LOG.info("Couldn't find a %s container on the pod", policy.target_container)
        return Patch([])

    return Patch(
        [
            PatchAction(
                op=PatchOp.REPLACE,
                path=f"/spec/containers/{target_index}/image",
                value=policy.target_image,
            )
        ]
    )
